import re
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_stock(value: Any) -> Optional[int]:
    """
    Loosely coerce a stock quantity to an integer.

    Numbers are truncated, strings are read up to their first non-digit
    ("12 units" -> 12), anything unparseable becomes 0.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    return 0


class ProductCreate(BaseModel):
    """
    Schema for creating a new product.

    Every field is optional at the schema level: presence of barcode, serial,
    name and price is checked by the service so that a missing field is
    reported as such rather than as a type error.
    """
    barcode: Optional[str] = Field(None, description="Product barcode (required)")
    serial: Optional[str] = Field(None, description="Serial number (required)")
    name: Optional[str] = Field(None, description="Product name (required)")
    brand: Optional[str] = Field(None, description="Brand, defaults to empty")
    category: Optional[str] = Field(None, description="Category, defaults to empty")
    price: Optional[float] = Field(None, description="Product price (required)")
    description: Optional[str] = Field(None, description="Free-text description")
    stock: Optional[int] = Field(None, description="Available stock, defaults to 0")

    model_config = ConfigDict(coerce_numbers_to_str=True)

    @field_validator("stock", mode="before")
    @classmethod
    def coerce_stock(cls, value: Any) -> Optional[int]:
        return parse_stock(value)


class ProductUpdate(BaseModel):
    """Schema for updating an existing product. All fields are optional, unknown fields are rejected."""
    barcode: Optional[str] = None
    serial: Optional[str] = None
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    description: Optional[str] = None
    stock: Optional[int] = None

    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    @field_validator("stock", mode="before")
    @classmethod
    def coerce_stock(cls, value: Any) -> Optional[int]:
        return parse_stock(value)


class ProductResponse(BaseModel):
    """A stored product as returned to clients."""
    id: str = Field(..., alias="_id")
    barcode: str
    serial: str
    name: str
    brand: str = ""
    category: str = ""
    price: float
    description: str = ""
    stock: int = 0
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_object_id(cls, value: Any) -> str:
        return str(value)

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        # MongoDB hands back naive datetimes that are UTC
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ProductEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: ProductResponse


class ProductListEnvelope(BaseModel):
    success: bool = True
    data: list[ProductResponse]
    pagination: Pagination


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime
