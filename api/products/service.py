"""
Product "service layer" (orchestration).

This is where we:
- validate identifiers and uploads before any transaction is opened
- coordinate the image store with the product transactions (repository)
- attach images to product rows for responses
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from fastapi import UploadFile

from core import db, errors
from core.validation import parse_id

from . import images, repository
from .schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

# Columns that are NOT NULL in the schema; an explicit null in an update is a client error.
_REQUIRED_ON_UPDATE = {"p_name", "price", "count"}


def _present(product: dict[str, Any]) -> dict[str, Any]:
    """
    Prices come back from asyncpg as Decimal; expose them as JSON numbers.
    """
    return {
        key: float(value) if isinstance(value, Decimal) else value
        for key, value in product.items()
    }


def _attach_images(
    products: list[dict[str, Any]],
    images_by_product: dict[int, list[dict[str, Any]]],
) -> list[dict[str, Any]]:
    return [
        {**_present(product), "images": images_by_product.get(int(product["product_id"]), [])}
        for product in products
    ]


async def list_products(
    *,
    category: str | None = None,
    finish_type: str | None = None,
    occasion_type: str | None = None,
    sort_by: str | None = None,
) -> list[dict[str, Any]]:
    try:
        rows = await repository.list_products(
            category=(category or "").strip() or None,
            finish_type=(finish_type or "").strip() or None,
            occasion_type=(occasion_type or "").strip() or None,
            sort_by=sort_by,
        )
        images_by_product = await repository.fetch_images(row["product_id"] for row in rows)
    except db.STORAGE_FAILURES as exc:
        raise errors.storage_error("Database error while fetching products", exc) from exc

    return _attach_images(rows, images_by_product)


async def get_product(raw_id: str | int) -> dict[str, Any]:
    product_id = parse_id(raw_id, label="product")

    try:
        row = await repository.get_product(product_id)
        if row is None:
            raise errors.NotFoundError("Product not found")
        images_by_product = await repository.fetch_images([product_id])
    except db.STORAGE_FAILURES as exc:
        raise errors.storage_error("Database error while fetching product", exc) from exc

    return _attach_images([row], images_by_product)[0]


async def create_product(fields: ProductCreate, files: list[UploadFile]) -> dict[str, Any]:
    """
    Save the uploaded images, then insert the product and its image rows in one
    transaction. If the transaction fails, the saved files are removed again.
    """
    images.validate_uploads(files)
    stored = await images.save_uploads(files)

    try:
        product = await repository.insert_product_with_images(fields.model_dump(), stored)
    except Exception as exc:
        await images.remove_stored(stored)
        if isinstance(exc, db.STORAGE_FAILURES):
            raise errors.storage_error("Database error while creating product", exc) from exc
        raise

    logger.info(
        "product_created product_id=%s images=%s",
        product["product_id"],
        len(product["images"]),
    )
    return _present(product)


async def update_product(raw_id: str | int, changes: ProductUpdate) -> dict[str, Any]:
    product_id = parse_id(raw_id, label="product")

    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise errors.InvalidInputError("No fields to update")
    nulled = sorted(name for name in _REQUIRED_ON_UPDATE if name in fields and fields[name] is None)
    if nulled:
        raise errors.InvalidInputError(f"Fields cannot be null: {', '.join(nulled)}")

    try:
        updated = await repository.update_product(product_id, fields)
    except db.STORAGE_FAILURES as exc:
        raise errors.storage_error("Database error while updating product", exc) from exc
    if updated is None:
        raise errors.NotFoundError("Product not found")

    logger.info("product_updated product_id=%s fields=%s", product_id, ",".join(sorted(fields)))
    return await get_product(product_id)


async def delete_product(raw_id: str | int) -> dict[str, Any]:
    product_id = parse_id(raw_id, label="product")

    try:
        deleted, files_removed = await repository.delete_product_with_images(
            product_id,
            remove_file=images.delete_image,
        )
    except db.STORAGE_FAILURES as exc:
        raise errors.storage_error("Database error while deleting product", exc) from exc

    if not deleted:
        raise errors.NotFoundError("Product not found")

    logger.info("product_deleted product_id=%s files_removed=%s", product_id, files_removed)
    return {"message": "Product deleted", "product_id": product_id}
