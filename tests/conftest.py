import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from todo_service.main import create_app
from todo_service.settings import get_settings

_ENV_VARS = (
    "NODE_ENV",
    "APP_ENV",
    "HOST",
    "PORT",
    "DATABASE_URL",
    "PGUSER",
    "PGPASSWORD",
    "PGHOST",
    "PGPORT",
    "PGDATABASE",
    "DB_POOL_MAX",
    "DB_IDLE_TIMEOUT",
    "DB_CONNECT_TIMEOUT",
    "DB_PING_AFTER",
    "DB_CREATE_SCHEMA",
    "CLIENT_URL",
    "RATE_LIMIT_ENABLED",
    "RATE_LIMIT_MAX",
    "RATE_LIMIT_WINDOW",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def db_url(tmp_path):
    # A file database so that every pooled connection sees the same tables.
    return f"sqlite:///{tmp_path / 'todos.db'}"


@pytest.fixture
def env(clean_env, db_url):
    clean_env.setenv("DATABASE_URL", db_url)
    clean_env.setenv("DB_CREATE_SCHEMA", "true")
    return clean_env


@pytest.fixture
def settings(env):
    return get_settings()


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


class BrokenStore:
    """Stands in for a store whose database is unreachable."""

    def __init__(self):
        self.calls = 0
        self.closed = False

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise OperationalError("SELECT * FROM todos", {}, Exception("connection refused"))

    list_todos = create_todo = update_todo = delete_todo = _fail

    def create_schema(self):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def broken_store():
    return BrokenStore()
