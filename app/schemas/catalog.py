from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import CamelModel


class ProductFields(BaseModel):
    """Scalar product fields. Every update replaces all of them."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    quantity: int = Field(default=0, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("description", mode="before")
    @classmethod
    def blank_description_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ProductImageRead(CamelModel):
    id: int
    image_url: str


class ProductRead(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    quantity: int
    images: list[ProductImageRead] = Field(default_factory=list)


class ProductPageRead(CamelModel):
    items: list[ProductRead]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int
    has_previous_page: bool
    has_next_page: bool


class ImageOperationRead(CamelModel):
    success: bool
    message: str
    image_urls: list[str] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)
