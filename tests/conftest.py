"""Pytest configuration and fixtures"""
import os
import tempfile
from datetime import datetime
from typing import Generator

_TMP = tempfile.mkdtemp(prefix="gws-backup-tests-")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DB_TYPE"] = "sqlite"
os.environ["DB_FILE"] = os.path.join(_TMP, "test.sqlite")
os.environ["EXPORT_DIR"] = os.path.join(_TMP, "exports")

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from gws_backup import auth, cache
from gws_backup.database import Base, SessionLocal, engine, get_db
from gws_backup.main import app
from gws_backup.models import AdminUser, Domain, Email, MailUser

PASSWORD = "password123"


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses."""

    def __init__(self):
        self.lists = {}
        self.hashes = {}
        self.values = {}

    def ping(self):
        return True

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def llen(self, key):
        return len(self.lists.get(key, []))

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value

    def incr(self, key):
        self.values[key] = int(self.values.get(key, 0)) + 1
        return self.values[key]

    def expire(self, key, seconds):
        return True

    def delete(self, key):
        self.values.pop(key, None)


class DownRedis:
    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise redis.ConnectionError("Connection refused")
        return _fail


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr(cache, "_redis", fake)
    return fake


@pytest.fixture
def redis_down(monkeypatch):
    monkeypatch.setattr(cache, "_redis", DownRedis())


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database session override"""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_admin(db: Session):
    def _make(username: str, role: str = "admin", password: str = PASSWORD) -> AdminUser:
        admin = AdminUser(username=username, password_hash=auth.hash_password(password), role=role)
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin
    return _make


def headers_for(admin: AdminUser) -> dict:
    token = auth.create_token(admin.id, admin.username, admin.role, admin.token_version)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def super_admin(make_admin) -> AdminUser:
    return make_admin("root", "super_admin")


@pytest.fixture
def super_headers(super_admin) -> dict:
    return headers_for(super_admin)


@pytest.fixture
def admin_headers(make_admin) -> dict:
    return headers_for(make_admin("operator", "admin"))


@pytest.fixture
def viewer_headers(make_admin) -> dict:
    return headers_for(make_admin("auditor", "viewer"))


@pytest.fixture
def domain(db: Session) -> Domain:
    d = Domain(name="example.com")
    db.add(d)
    db.commit()
    db.refresh(d)
    return d


@pytest.fixture
def mailbox(db: Session, domain: Domain) -> MailUser:
    user = MailUser(domain_id=domain.id, email="alice@example.com", status="active")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def add_emails(db: Session):
    def _add(user: MailUser, dates: list, **fields) -> list:
        rows = []
        for i, when in enumerate(dates):
            email = Email(
                user_id=user.id,
                message_id=f"<{user.id}-{i}-{when.isoformat()}@example.com>",
                subject=fields.get("subject", f"Message {i}"),
                from_email=fields.get("from_email", "bob@example.org"),
                to_email=user.email,
                date=when,
                eml_path=fields.get("eml_path"),
                size=fields.get("size", 1000),
                folder=fields.get("folder", "INBOX"),
            )
            db.add(email)
            rows.append(email)
        db.commit()
        for row in rows:
            db.refresh(row)
        return rows
    return _add


@pytest.fixture
def recent_emails(mailbox, add_emails) -> list:
    now = datetime.utcnow().replace(microsecond=0)
    return add_emails(mailbox, [now.replace(hour=9), now.replace(hour=10)])
