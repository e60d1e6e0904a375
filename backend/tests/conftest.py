"""
Shared test fixtures for the staff service backend tests.
"""
import os
import sys
import pytest

# ── Python path setup ──────────────────────────────────────────────────────────
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ── Storage layer ──────────────────────────────────────────────────────────────

@pytest.fixture
def data_dir(tmp_path):
    """Function-scoped: empty data directory per test."""
    return str(tmp_path / "data")


@pytest.fixture
def store(data_dir):
    """A connected DocumentStore with the Staff/Schedule schemas registered."""
    from staffdb import DocumentStore, register_schemas
    s = DocumentStore(data_dir).connect()
    register_schemas(s)
    yield s
    s.close()


@pytest.fixture
def directory(store):
    from staffdb import StaffDirectory
    return StaffDirectory(store)


@pytest.fixture
def ledger(store, directory):
    from staffdb import ScheduleLedger
    return ScheduleLedger(store, directory)


# ── API ────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app(data_dir):
    """The FastAPI app pointed at a fresh data directory, rate limiting off."""
    import staff_api.config as config_module
    from staff_api.main import app as _app
    from staff_api.dependencies import limiter
    original_dir = config_module.DATA_DIR
    original_enabled = limiter.enabled
    config_module.DATA_DIR = data_dir
    limiter.enabled = False
    yield _app
    config_module.DATA_DIR = original_dir
    limiter.enabled = original_enabled


@pytest.fixture
def client(app):
    """Function-scoped TestClient; entering it runs the app lifespan."""
    from starlette.testclient import TestClient
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


def make_staff(client, **overrides):
    """POST /staff with sensible defaults; returns the response."""
    body = {'businessId': 'B1', 'franchiseId': 'F1', 'name': 'Ann'}
    body.update(overrides)
    return client.post('/staff', json=body)
