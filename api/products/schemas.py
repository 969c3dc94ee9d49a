"""
Pydantic schemas for product endpoints.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from core.validation import MAX_ID

# products.count is an integer column.
MAX_COUNT = 2**31 - 1


class ProductCreate(BaseModel):
    p_name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    description: str | None = None
    short_description: str | None = Field(default=None, max_length=500)
    offer_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    offer_label: str | None = Field(default=None, max_length=100)
    finish_type_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    delivery_time: str | None = Field(default=None, max_length=100)
    count: int = Field(default=0, ge=0, le=MAX_COUNT)
    category_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    occasion_type_id: int | None = Field(default=None, gt=0, le=MAX_ID)


class ProductUpdate(BaseModel):
    """
    Partial update. Only fields present in the request body are written.
    """

    model_config = ConfigDict(extra="forbid")

    p_name: str | None = Field(default=None, min_length=1, max_length=255)
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    description: str | None = None
    short_description: str | None = Field(default=None, max_length=500)
    offer_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    offer_label: str | None = Field(default=None, max_length=100)
    finish_type_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    delivery_time: str | None = Field(default=None, max_length=100)
    count: int | None = Field(default=None, ge=0, le=MAX_COUNT)
    category_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    occasion_type_id: int | None = Field(default=None, gt=0, le=MAX_ID)
