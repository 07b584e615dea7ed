import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from factories import make_user
from main import app


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    client.drop_database("shop_test")
    database = client["shop_test"]
    ensure_indexes(database)
    yield database
    client.drop_database("shop_test")


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", role="admin")
