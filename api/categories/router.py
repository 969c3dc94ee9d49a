"""
Category API endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from core import db, errors
from core.validation import parse_id

from . import repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/category")


@router.get("")
async def list_categories() -> list[dict]:
    try:
        rows = await repository.list_categories()
    except db.STORAGE_FAILURES as exc:
        raise errors.storage_error("Database error while fetching categories", exc) from exc
    logger.info("categories_listed count=%s", len(rows))
    return rows


@router.get("/{category_id}")
async def get_category(category_id: str) -> dict:
    parsed_id = parse_id(category_id, label="category")
    try:
        row = await repository.get_category(parsed_id)
    except db.STORAGE_FAILURES as exc:
        raise errors.storage_error("Database error while fetching category", exc) from exc
    if row is None:
        raise errors.NotFoundError("Category not found")
    return row
