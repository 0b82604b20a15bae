import pytest
from fastapi.testclient import TestClient

from database import get_db, get_db_connection, init_db
from main import app


@pytest.fixture()
def db_path(tmp_path):
    path = str(tmp_path / "test.db")
    init_db(path)
    return path


@pytest.fixture()
def client(db_path):
    """TestClient 指向临时数据库；不进入 with，所以不会跑 lifespan"""

    def override_get_db():
        conn = get_db_connection(db_path)
        try:
            yield conn
        finally:
            conn.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, name="Alice", email="alice@example.com", password="secret123"):
    r = client.post("/api/auth/register",
                    json={"name": name, "email": email, "password": password})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture()
def auth_headers(client):
    token = register(client)["token"]
    return {"Authorization": f"Bearer {token}"}
