"""Tests for ProductService against an in-memory collection."""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from bson import ObjectId
from bson.errors import InvalidId

from product_api.models.product import next_timestamp
from product_api.schemas.product import ProductCreate, ProductUpdate, parse_stock
from product_api.services.product_service import (
    ProductService,
    MissingFieldsError,
    ProductConflictError,
)


@pytest.fixture
def service(collection):
    return ProductService(collection, max_page_size=5)


def _create(service, **overrides):
    data = {"barcode": "123", "serial": "S1", "name": "Widget", "price": 10}
    data.update(overrides)
    return service.create(ProductCreate(**data))


def test_create_assigns_identifier_and_timestamps(service, collection):
    product = _create(service)

    assert isinstance(product["_id"], ObjectId)
    assert product["createdAt"] == product["updatedAt"]
    assert collection.count_documents({}) == 1


def test_create_reports_missing_fields(service, collection):
    with pytest.raises(MissingFieldsError) as exc_info:
        service.create(ProductCreate(barcode="123", price=5))

    assert exc_info.value.fields == ["serial", "name"]
    assert collection.count_documents({}) == 0


def test_create_conflict_from_unique_index(service, collection):
    """A request that passes the pre-check but loses the race still conflicts."""
    _create(service)

    with patch.object(service.collection, "find_one", return_value=None):
        with pytest.raises(ProductConflictError):
            _create(service, serial="S2")

    assert collection.count_documents({}) == 1


def test_get_by_identifier(service):
    created = _create(service)

    assert service.get_by_identifier("123")["_id"] == created["_id"]
    assert service.get_by_identifier("S1")["_id"] == created["_id"]
    assert service.get_by_identifier("missing") is None


def test_get_all_clamps_limit(service):
    for i in range(7):
        _create(service, barcode=f"B{i}", serial=f"S{i}")

    products, total, pages, limit = service.get_all(page=1, limit=1000)

    assert limit == 5
    assert len(products) == 5
    assert total == 7
    assert pages == 2


def test_get_all_page_past_end(service):
    _create(service)

    products, total, pages, _ = service.get_all(page=3, limit=2)

    assert products == []
    assert total == 1
    assert pages == 1


def test_build_search_query():
    assert ProductService.build_search_query("") == {}

    query = ProductService.build_search_query("a.b")
    fields = [next(iter(clause)) for clause in query["$or"]]
    assert fields == ["name", "brand", "category", "barcode", "serial"]
    assert query["$or"][0]["name"] == {"$regex": r"a\.b", "$options": "i"}


def test_update_ignores_none_values(service):
    created = _create(service, brand="Acme")

    updated = service.update(str(created["_id"]), ProductUpdate(brand=None, stock="9"))

    assert updated["brand"] == "Acme"
    assert updated["stock"] == 9
    assert updated["updatedAt"] > created["updatedAt"]


def test_update_missing_product(service):
    assert service.update(str(ObjectId()), ProductUpdate(name="x")) is None


def test_update_missing_product_with_taken_barcode(service):
    _create(service)

    assert service.update(str(ObjectId()), ProductUpdate(barcode="123")) is None


def test_update_always_advances_updated_at(service):
    created = _create(service)
    product_id = str(created["_id"])

    previous = created["updatedAt"]
    for i in range(50):
        updated = service.update(product_id, ProductUpdate(stock=i))
        assert updated["updatedAt"] > previous
        previous = updated["updatedAt"]

    assert updated["createdAt"] == created["createdAt"]


def test_update_retries_after_concurrent_change(service, collection):
    """A write landing between read and update is not overwritten with an older timestamp."""
    created = _create(service)
    later = created["updatedAt"] + timedelta(seconds=5)
    real_find_one = collection.find_one
    calls = []

    def find_one_then_touch(*args, **kwargs):
        result = real_find_one(*args, **kwargs)
        if not calls:
            collection.update_one({"_id": created["_id"]}, {"$set": {"updatedAt": later}})
        calls.append(args)
        return result

    with patch.object(service.collection, "find_one", side_effect=find_one_then_touch):
        updated = service.update(str(created["_id"]), ProductUpdate(name="Renamed"))

    assert updated["name"] == "Renamed"
    assert updated["updatedAt"] > later


def test_update_invalid_identifier(service):
    with pytest.raises(InvalidId):
        service.update("bogus", ProductUpdate(name="x"))


def test_update_to_own_barcode_is_not_a_conflict(service):
    created = _create(service)

    updated = service.update(str(created["_id"]), ProductUpdate(barcode="123", serial="S1"))

    assert updated["barcode"] == "123"


def test_delete(service, collection):
    created = _create(service)

    assert service.delete(str(created["_id"])) is True
    assert service.delete(str(created["_id"])) is False
    assert collection.count_documents({}) == 0


@pytest.mark.parametrize("value,expected", [
    (None, None),
    (5, 5),
    (3.7, 3),
    ("12", 12),
    ("12 units", 12),
    (" -4", -4),
    ("many", 0),
    ("", 0),
    ([1], 0),
])
def test_parse_stock(value, expected):
    assert parse_stock(value) == expected


def test_next_timestamp():
    previous = datetime(2100, 1, 1, 12, 0, 0, 5000)

    assert next_timestamp(previous) == previous + timedelta(milliseconds=1)
    assert next_timestamp(None) <= datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=1)
    assert next_timestamp(datetime(2000, 1, 1)) > datetime(2000, 1, 1)
