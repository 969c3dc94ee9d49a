"""
FastAPI router for product endpoints.
"""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, File, Form, Query, UploadFile, status

from . import service
from .schemas import MAX_COUNT, ProductCreate, ProductUpdate

router = APIRouter(prefix="/api/items")


@router.get("")
async def list_products(
    category: str | None = Query(default=None, max_length=255),
    finish_type: str | None = Query(default=None, max_length=255),
    occasion_type: str | None = Query(default=None, max_length=255),
    sort_by: str | None = Query(default=None, description="price_asc | price_desc | latest"),
) -> list[dict]:
    return await service.list_products(
        category=category,
        finish_type=finish_type,
        occasion_type=occasion_type,
        sort_by=sort_by,
    )


# Ids are validated by the service so malformed ones map to 400, not 422.
@router.get("/{product_id}")
async def get_product(product_id: str) -> dict:
    return await service.get_product(product_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    p_name: str = Form(..., min_length=1, max_length=255),
    price: Decimal = Form(..., ge=0),
    description: str | None = Form(default=None),
    short_description: str | None = Form(default=None),
    offer_price: Decimal | None = Form(default=None, ge=0),
    offer_label: str | None = Form(default=None),
    finish_type_id: int | None = Form(default=None),
    delivery_time: str | None = Form(default=None),
    count: int = Form(default=0, ge=0, le=MAX_COUNT),
    category_id: int | None = Form(default=None),
    occasion_type_id: int | None = Form(default=None),
    images: list[UploadFile] = File(default=[]),
) -> dict:
    """
    Create a product from multipart form fields plus up to 5 `images` files.
    """
    fields = ProductCreate(
        p_name=p_name,
        price=price,
        description=description,
        short_description=short_description,
        offer_price=offer_price,
        offer_label=offer_label,
        finish_type_id=finish_type_id,
        delivery_time=delivery_time,
        count=count,
        category_id=category_id,
        occasion_type_id=occasion_type_id,
    )
    return await service.create_product(fields, images)


@router.put("/{product_id}")
async def update_product(product_id: str, changes: ProductUpdate) -> dict:
    return await service.update_product(product_id, changes)


@router.delete("/{product_id}")
async def delete_product(product_id: str) -> dict:
    return await service.delete_product(product_id)
