"""
Product persistence.
This module is where product-related SQL lives.

Images are never aggregated into delimited strings: they are fetched with a
separate `= ANY($1)` query and attached to their products in Python.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable

from core import db
from core.sql import QueryParams, where_clause

from .images import StoredImage

# Columns a client may write. Keys double as SQL identifiers, so they must
# never come from request data directly.
WRITABLE_COLUMNS = (
    "p_name",
    "description",
    "short_description",
    "price",
    "offer_price",
    "offer_label",
    "finish_type_id",
    "delivery_time",
    "count",
    "category_id",
    "occasion_type_id",
)

PRODUCT_RETURNING = """
    product_id, p_name, description, short_description, price, offer_price,
    offer_label, finish_type_id, delivery_time, count, category_id,
    occasion_type_id, created_at
"""

SORT_ORDERS = {
    "price_asc": "p.price ASC, p.product_id ASC",
    "price_desc": "p.price DESC, p.product_id DESC",
    "latest": "p.created_at DESC, p.product_id DESC",
}
DEFAULT_SORT = "latest"

_PRODUCT_COLUMNS = """
      p.product_id,
      p.p_name,
      p.description,
      p.short_description,
      p.price,
      p.offer_price,
      p.offer_label,
      p.finish_type_id,
      f.name AS finish_type,
      p.delivery_time,
      p.count,
      p.category_id,
      c.name AS category,
      p.occasion_type_id,
      o.name AS occasion_type,
      p.created_at
"""

_LOOKUP_JOINS = """
    LEFT JOIN categories c ON c.category_id = p.category_id
    LEFT JOIN finish_types f ON f.finish_type_id = p.finish_type_id
    LEFT JOIN occasion_types o ON o.occasion_type_id = p.occasion_type_id
"""

_PRODUCT_SELECT = f"""
    SELECT
    {_PRODUCT_COLUMNS}
    FROM products p
    {_LOOKUP_JOINS}
"""


def resolve_sort(sort_by: str | None) -> str:
    key = (sort_by or "").strip().lower()
    return key if key in SORT_ORDERS else DEFAULT_SORT


def build_list_query(
    *,
    category: str | None = None,
    finish_type: str | None = None,
    occasion_type: str | None = None,
    sort_by: str | None = None,
) -> tuple[str, list[Any]]:
    """
    Build the filtered product listing query.

    Absent (None/blank) filters add no condition. Returns (sql, args).
    """
    params = QueryParams()
    conditions: list[str] = []

    if category:
        conditions.append(f"c.name = {params.add(category)}")
    if finish_type:
        conditions.append(f"f.name = {params.add(finish_type)}")
    if occasion_type:
        conditions.append(f"o.name = {params.add(occasion_type)}")

    sql = f"""
    {_PRODUCT_SELECT}
    WHERE {where_clause(conditions)}
    ORDER BY {SORT_ORDERS[resolve_sort(sort_by)]}
    """
    return sql, params.args


async def list_products(
    *,
    category: str | None = None,
    finish_type: str | None = None,
    occasion_type: str | None = None,
    sort_by: str | None = None,
) -> list[dict[str, Any]]:
    sql, args = build_list_query(
        category=category,
        finish_type=finish_type,
        occasion_type=occasion_type,
        sort_by=sort_by,
    )
    return await db.fetch_all(sql, *args)


async def get_product(product_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        {_PRODUCT_SELECT}
        WHERE p.product_id = $1
        """,
        product_id,
    )


async def fetch_images(product_ids: Iterable[int]) -> dict[int, list[dict[str, Any]]]:
    """
    Fetch images for many products in one query.

    Returns {product_id: [{image_url, alt_text, sort_order}, ...]} with each
    list in sort_order. Products without images are absent from the mapping.
    """
    ids = list(dict.fromkeys(int(x) for x in product_ids))
    if not ids:
        return {}

    rows = await db.fetch_all(
        """
        SELECT product_id, image_url, alt_text, sort_order
        FROM product_images
        WHERE product_id = ANY($1::bigint[])
        ORDER BY product_id, sort_order
        """,
        ids,
    )

    grouped: dict[int, list[dict[str, Any]]] = {}
    for row in rows:
        grouped.setdefault(int(row["product_id"]), []).append(
            {
                "image_url": row["image_url"],
                "alt_text": row["alt_text"] or "",
                "sort_order": int(row["sort_order"]),
            }
        )
    return grouped


async def insert_product_with_images(
    fields: dict[str, Any],
    images: list[StoredImage],
) -> dict[str, Any]:
    """
    Insert a product + its image rows in a single transaction.

    Images get sort_order 1..N in the order given. Returns the inserted
    product in the same shape as `get_product`, plus an `images` list.
    """
    values = [fields.get(column) for column in WRITABLE_COLUMNS]
    if values[WRITABLE_COLUMNS.index("count")] is None:
        values[WRITABLE_COLUMNS.index("count")] = 0

    async with db.transaction() as conn:
        row = await conn.fetchrow(
            f"""
            WITH inserted AS (
              INSERT INTO products ({", ".join(WRITABLE_COLUMNS)})
              VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
              RETURNING *
            )
            SELECT {_PRODUCT_COLUMNS}
            FROM inserted p
            {_LOOKUP_JOINS}
            """,
            *values,
        )
        if row is None or "product_id" not in row:
            raise RuntimeError("Failed to insert product.")

        product = dict(row)
        product_id = int(product["product_id"])

        records = [
            (product_id, image.image_url, image.alt_text, sort_order)
            for sort_order, image in enumerate(images, start=1)
        ]
        if records:
            await conn.executemany(
                """
                INSERT INTO product_images (product_id, image_url, alt_text, sort_order)
                VALUES ($1, $2, $3, $4)
                """,
                records,
            )

    product["images"] = [
        {"image_url": image_url, "alt_text": alt_text, "sort_order": sort_order}
        for (_, image_url, alt_text, sort_order) in records
    ]
    return product


async def delete_product_with_images(
    product_id: int,
    remove_file: Callable[[str], Awaitable[bool]],
) -> tuple[bool, int]:
    """
    Delete a product, its image rows and (best-effort) its image files.

    Everything DB-side runs in one transaction. Files are removed before the
    rows; `remove_file` must not raise for filesystem problems.

    Returns (deleted, files_removed). When no product row exists nothing
    is changed and (False, 0) is returned.
    """
    files_removed = 0
    async with db.transaction() as conn:
        image_rows = await conn.fetch(
            """
            SELECT image_url
            FROM product_images
            WHERE product_id = $1
            ORDER BY sort_order
            """,
            product_id,
        )
        for image_row in image_rows:
            if await remove_file(image_row["image_url"]):
                files_removed += 1

        await conn.execute(
            "DELETE FROM product_images WHERE product_id = $1",
            product_id,
        )
        deleted = await conn.fetchrow(
            """
            DELETE FROM products
            WHERE product_id = $1
            RETURNING product_id
            """,
            product_id,
        )

    if deleted is None:
        return False, 0
    return True, files_removed


async def update_product(product_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    """
    Update the given columns of one product. Unknown keys are ignored.

    Returns the updated row, or None when the product does not exist.
    """
    params = QueryParams()
    assignments = [
        f"{column} = {params.add(fields[column])}"
        for column in WRITABLE_COLUMNS
        if column in fields
    ]
    if not assignments:
        raise ValueError("update_product called without writable fields.")

    id_placeholder = params.add(product_id)
    return await db.fetch_one(
        f"""
        UPDATE products
        SET {", ".join(assignments)}
        WHERE product_id = {id_placeholder}
        RETURNING {PRODUCT_RETURNING}
        """,
        *params.args,
    )
