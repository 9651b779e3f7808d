import logging
from typing import Optional

from fastapi import Request
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from product_api.config import Settings
from product_api.services.seed_service import seed_products

logger = logging.getLogger(__name__)


class DatabaseUnavailableError(Exception):
    """Exception raised when a request needs the database but no connection is established."""
    pass


class Database:
    """
    Gateway to the MongoDB database holding the product collection.

    A single instance is created per application and shared by every request.
    The client is created lazily on ``connect()``; a pre-built client (for
    example a ``mongomock.MongoClient``) can be injected instead.

    A failed ``connect()`` is logged and leaves the gateway unavailable:
    ``products`` then raises ``DatabaseUnavailableError`` so callers can
    answer with 503 instead of failing deep inside the driver.
    """

    def __init__(
        self,
        uri: str,
        name: str,
        collection_name: str = "products",
        timeout_ms: int = 5000,
        client: Optional[MongoClient] = None,
    ):
        self.uri = uri
        self.name = name
        self.collection_name = collection_name
        self.timeout_ms = timeout_ms
        self._client = client
        self._db = None

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[MongoClient] = None) -> "Database":
        return cls(
            uri=settings.MONGODB_URI,
            name=settings.MONGODB_DATABASE,
            collection_name=settings.MONGODB_COLLECTION,
            timeout_ms=settings.MONGODB_TIMEOUT_MS,
            client=client,
        )

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    @property
    def products(self) -> Collection:
        if self._db is None:
            raise DatabaseUnavailableError("Database connection is not available")
        return self._db[self.collection_name]

    def connect(self) -> bool:
        """
        Establish the connection and prepare the collection indexes.

        Returns:
            True if the database answered, False otherwise
        """
        try:
            if self._client is None:
                self._client = MongoClient(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
            # Forces server selection; MongoClient itself connects lazily
            self._client.server_info()
            self._db = self._client[self.name]
        except PyMongoError as e:
            logger.error(f"MongoDB connection error: {e}")
            self._db = None
            return False

        logger.info(f"Connected to MongoDB database '{self.name}'")
        self.ensure_indexes()
        return True

    def ensure_indexes(self) -> None:
        """
        Create the unique indexes on barcode and serial.

        Existing duplicates make the unique index build fail; that is logged
        and the service keeps running on the application-level check alone.
        """
        collection = self.products
        try:
            collection.create_index([("barcode", ASCENDING)], unique=True, name="barcode_unique")
            collection.create_index([("serial", ASCENDING)], unique=True, name="serial_unique")
            collection.create_index([("createdAt", DESCENDING)], name="created_at_desc")
        except PyMongoError as e:
            logger.warning(f"Could not create product indexes: {e}")

    def ping(self) -> bool:
        if self._client is None or self._db is None:
            return False
        try:
            self._client.server_info()
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    def seed_if_empty(self) -> int:
        """Insert the sample products when the collection has no documents."""
        collection = self.products
        if collection.count_documents({}) > 0:
            return 0
        return seed_products(collection)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._db = None


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Collection:
    """
    Dependency to get the products collection.
    Raises DatabaseUnavailableError when the startup connection failed.
    """
    return get_database(request).products
