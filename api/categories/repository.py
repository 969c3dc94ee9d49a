"""
Category persistence (raw SQL).
"""

from __future__ import annotations

from core import db


async def list_categories() -> list[dict]:
    return await db.fetch_all(
        """
        SELECT category_id, name
        FROM categories
        ORDER BY category_id ASC
        """
    )


async def get_category(category_id: int) -> dict | None:
    return await db.fetch_one(
        """
        SELECT category_id, name
        FROM categories
        WHERE category_id = $1
        """,
        category_id,
    )
