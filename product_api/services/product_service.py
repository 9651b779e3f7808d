import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from product_api.models.product import MUTABLE_FIELDS, SEARCH_FIELDS, build_product_document, next_timestamp
from product_api.schemas.product import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("barcode", "serial", "name", "price")
DUPLICATE_PRODUCT = "Product with this barcode or serial already exists"


class ProductNotFoundError(Exception):
    """Exception raised when no product matches the requested identifier."""
    pass


class MissingFieldsError(Exception):
    """Exception raised when a required field is absent from a create request."""

    def __init__(self, fields: List[str]):
        self.fields = fields
        super().__init__(f"Missing required fields: {', '.join(REQUIRED_FIELDS)}")


class ProductConflictError(Exception):
    """Exception raised when another product already uses the barcode or serial."""
    pass


class ProductService:
    """
    Service class for Product CRUD operations against the products collection.

    Uniqueness of barcode and serial is checked before insert and backed by
    unique indexes, so a request that loses the race between check and
    insert still ends in a conflict instead of a duplicate.
    """

    def __init__(self, collection: Collection, max_page_size: int = 100):
        self.collection = collection
        self.max_page_size = max_page_size

    def get_by_identifier(self, identifier: str) -> Optional[Dict[str, Any]]:
        """
        Find a product by barcode or serial.

        Args:
            identifier: Barcode or serial number

        Returns:
            The first matching document or None
        """
        return self.collection.find_one({"$or": [{"barcode": identifier}, {"serial": identifier}]})

    def create(self, product_data: ProductCreate) -> Dict[str, Any]:
        """
        Create a new product.

        Raises:
            MissingFieldsError: If barcode, serial, name or price is absent
            ProductConflictError: If the barcode or serial is already taken
        """
        missing = [field for field in REQUIRED_FIELDS if not getattr(product_data, field)]
        if missing:
            raise MissingFieldsError(missing)

        existing = self.collection.find_one(
            {"$or": [{"barcode": product_data.barcode}, {"serial": product_data.serial}]}
        )
        if existing:
            raise ProductConflictError(DUPLICATE_PRODUCT)

        document = build_product_document(
            barcode=product_data.barcode,
            serial=product_data.serial,
            name=product_data.name,
            price=product_data.price,
            brand=product_data.brand,
            category=product_data.category,
            description=product_data.description,
            stock=product_data.stock,
        )
        try:
            result = self.collection.insert_one(document)
        except DuplicateKeyError:
            raise ProductConflictError(DUPLICATE_PRODUCT)

        document["_id"] = result.inserted_id
        logger.info(f"Product {result.inserted_id} created (barcode={document['barcode']}, serial={document['serial']})")
        return document

    def get_all(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = ""
    ) -> Tuple[List[Dict[str, Any]], int, int, int]:
        """
        Get a page of products, newest first.

        Args:
            page: Page number (1-indexed)
            limit: Requested page size, clamped to max_page_size
            search: Case-insensitive substring matched against name, brand,
                category, barcode and serial

        Returns:
            Tuple of (products, total count, total pages, effective limit)
        """
        limit = min(limit, self.max_page_size)
        query = self.build_search_query(search)

        skip = (page - 1) * limit
        cursor = (
            self.collection.find(query)
            .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
            .skip(skip)
            .limit(limit)
        )
        products = list(cursor)

        # Counted separately, so the total is a snapshot and may drift from the page under concurrent writes
        total = self.collection.count_documents(query)
        pages = math.ceil(total / limit)

        return products, total, pages, limit

    @staticmethod
    def build_search_query(search: str) -> Dict[str, Any]:
        if not search:
            return {}
        pattern = {"$regex": re.escape(search), "$options": "i"}
        return {"$or": [{field: pattern} for field in SEARCH_FIELDS]}

    def update(self, product_id: str, product_data: ProductUpdate) -> Optional[Dict[str, Any]]:
        """
        Update an existing product.

        Only fields present in the request are written; updatedAt is always refreshed.

        Args:
            product_id: Database identifier of the product
            product_data: Update data

        Returns:
            Updated document or None if not found

        Raises:
            bson.errors.InvalidId: If product_id is not a valid ObjectId
            ProductConflictError: If the new barcode or serial is already taken
        """
        object_id = ObjectId(product_id)
        update_data = product_data.model_dump(exclude_unset=True, exclude_none=True, include=set(MUTABLE_FIELDS))

        current = self.collection.find_one({"_id": object_id}, {"updatedAt": 1})
        if current is None:
            return None

        keys = [{field: update_data[field]} for field in ("barcode", "serial") if field in update_data]
        if keys and self.collection.find_one({"_id": {"$ne": object_id}, "$or": keys}):
            raise ProductConflictError(DUPLICATE_PRODUCT)

        # Conditioned on the updatedAt we read, so a concurrent update makes us re-read and move past it
        product = None
        while current is not None:
            previous = current.get("updatedAt")
            update_data["updatedAt"] = next_timestamp(previous)
            try:
                product = self.collection.find_one_and_update(
                    {"_id": object_id, "updatedAt": previous},
                    {"$set": update_data},
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                raise ProductConflictError(DUPLICATE_PRODUCT)
            if product is not None:
                break
            current = self.collection.find_one({"_id": object_id}, {"updatedAt": 1})

        if product:
            logger.info(f"Product {product_id} updated: {sorted(update_data)}")
        return product

    def delete(self, product_id: str) -> bool:
        """
        Delete a product.

        Returns:
            True if deleted, False if not found
        """
        result = self.collection.delete_one({"_id": ObjectId(product_id)})
        if result.deleted_count:
            logger.info(f"Product {product_id} deleted")
        return result.deleted_count == 1
