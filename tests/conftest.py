# tests/conftest.py
import os
import tempfile
import uuid

# database.py 在 import 時就建立 engine，所以測試用 DB 必須先設定好
_TEST_DB_DIR = tempfile.mkdtemp(prefix="spyfall-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"

import pytest
from sqlalchemy.orm import Session
from fastapi.testclient import TestClient

from database import Base, engine, SessionLocal
from main import app

# 確保所有 model 都註冊到 Base
import models  # noqa: F401
from services.identity_service import upsert_user


@pytest.fixture(scope="function")
def db() -> Session:
    """
    每個測試都用一個乾淨的 DB（與 app 共用同一個 engine）
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db) -> TestClient:
    """
    直接使用 app 的 TestClient，不覆寫任何 dependency
    """
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    """在 DB 裡直接建立裝置使用者"""
    def _make(name: str = "Player"):
        return upsert_user(db, str(uuid.uuid4()), name)
    return _make


@pytest.fixture
def register(client):
    """透過 API 建立裝置使用者，返回 (user_id, headers)"""
    def _register(name: str = "Player"):
        user_id = str(uuid.uuid4())
        res = client.put(f"/api/users/{user_id}", json={"name": name})
        assert res.status_code == 200
        return user_id, {"X-User-Id": user_id}
    return _register
