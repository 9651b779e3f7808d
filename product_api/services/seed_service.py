"""Seed service for initial data"""
import logging

from pymongo.collection import Collection

from product_api.models.product import build_product_document, utcnow

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    dict(barcode="1234567890123", serial="SN001", name="iPhone 15 Pro", brand="Apple", category="Smartphone",
         price=39900, description="Latest iPhone with A17 Pro chip", stock=50),
    dict(barcode="2345678901234", serial="SN002", name="Samsung Galaxy S24", brand="Samsung", category="Smartphone",
         price=29900, description="Flagship Android phone", stock=30),
    dict(barcode="3456789012345", serial="SN003", name="MacBook Air M3", brand="Apple", category="Laptop",
         price=42900, description="Ultra-thin laptop with M3 chip", stock=20),
]


def seed_products(collection: Collection) -> int:
    """Insert the sample products and return how many were written."""
    now = utcnow()
    documents = [build_product_document(now=now, **product) for product in SAMPLE_PRODUCTS]
    result = collection.insert_many(documents)
    logger.info(f"Sample data created: {len(result.inserted_ids)} products")
    return len(result.inserted_ids)
