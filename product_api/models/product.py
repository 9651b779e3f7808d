"""Storage shape of a product document in the ``products`` collection."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

# Fields matched by the free-text search on the listing endpoint
SEARCH_FIELDS = ("name", "brand", "category", "barcode", "serial")

# Fields a client may change after creation
MUTABLE_FIELDS = ("barcode", "serial", "name", "brand", "category", "price", "description", "stock")


def utcnow() -> datetime:
    """Current UTC time as stored by BSON: naive, millisecond precision."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def build_product_document(
    barcode: str,
    serial: str,
    name: str,
    price: float,
    brand: Optional[str] = None,
    category: Optional[str] = None,
    description: Optional[str] = None,
    stock: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a new product document.

    Optional strings default to empty, stock defaults to 0, and both
    timestamps are set to the same instant.
    """
    now = now or utcnow()
    return {
        "barcode": barcode,
        "serial": serial,
        "name": name,
        "brand": brand or "",
        "category": category or "",
        "price": float(price),
        "description": description or "",
        "stock": stock or 0,
        "createdAt": now,
        "updatedAt": now,
    }


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """
    Timestamp for a modification that must sort strictly after ``previous``.

    Two writes within the same millisecond would otherwise share a value.
    """
    now = utcnow()
    if isinstance(previous, datetime):
        if previous.tzinfo is not None:
            previous = previous.astimezone(timezone.utc).replace(tzinfo=None)
        if now <= previous:
            return previous + timedelta(milliseconds=1)
    return now
