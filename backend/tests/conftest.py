# backend/tests/conftest.py
# ---------------------------------------------------------------------
# - 一時ディレクトリの SQLite を使う（warehouse をインポートする前に環境変数を設定）
# - テストごとにテーブルを作り直す
# - 監査ログは同期書き込み、レート制限はテストごとにリセット
# ---------------------------------------------------------------------

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="warehouse-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-warehouse-suite"
os.environ["AUDIT_LOG_ASYNC"] = "false"
os.environ["GEMINI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from warehouse.database import Base, SessionLocal, engine
from warehouse.main import app
from warehouse.models.user import User
from warehouse.utils.jwt_auth import create_access_token, hash_password
from warehouse.utils.rate_limiter import api_limiter, login_limiter

ADMIN_PASSWORD = "admin-pass-123"
CASHIER_PASSWORD = "cashier-pass-123"


@pytest.fixture(autouse=True)
def _fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    api_limiter.reset()
    login_limiter.reset()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _make_user(db, username, password, role, full_name):
    user = User(
        username=username,
        password_hash=hash_password(password),
        full_name=full_name,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    return _make_user(db, "boss", ADMIN_PASSWORD, "admin", "Owner")


@pytest.fixture
def cashier_user(db):
    return _make_user(db, "nino", CASHIER_PASSWORD, "cashier", "Nino")


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def cashier_headers(cashier_user):
    return _headers(cashier_user)


@pytest.fixture
def product(client, admin_headers):
    """在庫 20、原価 50、販売価格 80 の商品"""
    r = client.post("/api/products", headers=admin_headers, json={
        "name": "Widget",
        "price": 80,
        "cost_price": 50,
        "stock": 20,
    })
    assert r.status_code == 201, r.text
    return r.json()
