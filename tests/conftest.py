from unittest.mock import MagicMock

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from product_api.config import Settings
from product_api.database import Database
from product_api.main import create_app


# In-memory MongoDB stand-in; seeding off so every test starts from an empty collection
test_settings = Settings(
    MONGODB_URI="mongodb://localhost:27017/product_test",
    MONGODB_DATABASE="product_test",
    SEED_SAMPLE_DATA=False,
    MAX_PAGE_SIZE=50,
)


@pytest.fixture(scope="function")
def database():
    """Storage gateway wired to a fresh mongomock client."""
    db = Database.from_settings(test_settings, client=mongomock.MongoClient())
    yield db
    db.close()


@pytest.fixture(scope="function")
def client(database):
    """Create test client with a fresh database for each test."""
    app = create_app(settings=test_settings, database=database)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def collection(database):
    """Connected products collection for direct access in tests."""
    database.connect()
    return database.products


@pytest.fixture
def create_product(client):
    """Factory creating a product through the API and returning the response."""
    def _create(**overrides):
        payload = {
            "barcode": "123",
            "serial": "S1",
            "name": "Widget",
            "price": 10,
        }
        payload.update(overrides)
        return client.post("/api/product", json=payload)

    return _create


@pytest.fixture
def unreachable_app():
    """Application whose MongoDB server never answers."""
    mongo_client = MagicMock()
    mongo_client.server_info.side_effect = ServerSelectionTimeoutError("no servers available")
    database = Database.from_settings(test_settings, client=mongo_client)
    return create_app(settings=test_settings, database=database)


@pytest.fixture
def settings():
    return test_settings
