"""Shared fixtures: an isolated SQLite database, temporary upload roots and
an app wired to both through dependency overrides."""

import itertools
import os
from contextlib import contextmanager

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("APP_ENV", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from roots.auth.service import seed_roles
from roots.db.breaker import CircuitBreaker
from roots.db.session import Database, get_database
from roots.main import create_app
from roots.models.user import Role, RolePermission, User
from roots.storage.files import FileStore, get_file_store
from roots.utils.security import hash_password


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database(tmp_path, clock):
    db = Database(f"sqlite:///{tmp_path / 'test.db'}", CircuitBreaker(10, clock=clock))
    db.init_schema()
    with db.session() as session:
        seed_roles(session)
    yield db
    db.dispose()


@pytest.fixture
def store(tmp_path):
    s = FileStore(tmp_path / "uploads", tmp_path / "private")
    s.ensure_dirs(("books", "gallery", "trees"))
    return s


@pytest.fixture
def app(database, store):
    app = create_app()
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_file_store] = lambda: store
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(database):
    counter = itertools.count(1)

    def _make(role_id: int = 2, permissions=(), status: str = "active", password: str = "secret123"):
        n = next(counter)
        with database.session() as db:
            if permissions:
                role = Role(name=f"role-{n}")
                db.add(role)
                db.flush()
                for name in permissions:
                    db.add(RolePermission(role_id=role.id, permission=name))
                role_id = role.id
            user = User(
                full_name=f"User {n}",
                email=f"user{n}@example.com",
                password_hash=hash_password(password),
                status=status,
                role_id=role_id,
            )
            db.add(user)
            db.commit()
            return {"id": user.id, "email": user.email, "password": password, "full_name": user.full_name}

    return _make


@pytest.fixture
def login(client):
    def _login(user) -> dict:
        r = client.post("/auth/login", json={"email": user["email"], "password": user["password"]})
        assert r.status_code == 200, r.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login


@pytest.fixture
def owner(make_user):
    return make_user()


@pytest.fixture
def other(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role_id=1)


def _lost_connection(self):
    raise OperationalError("COMMIT", {}, Exception("connection refused"))


@pytest.fixture
def failing_commits(database):
    """Within the returned context every ORM commit fails like a dropped
    connection; the breaker is closed again on exit."""

    @contextmanager
    def _failing():
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(Session, "commit", _lost_connection)
            yield
        database.breaker.reset()

    return _failing


@pytest.fixture
def stored_files(store):
    """Every file currently on disk under either upload root."""

    def _files() -> set:
        return {p for root in (store.public_root, store.private_root) for p in root.rglob("*") if p.is_file()}

    return _files
