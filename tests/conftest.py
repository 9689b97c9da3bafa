"""Shared fixtures: an isolated per-user data directory and an HTTP client."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture()
def data_dir(tmp_path, monkeypatch) -> Path:
    from fleetdesk import config

    directory = tmp_path / "data"
    monkeypatch.setattr(config, "DATA_DIR", directory)
    return directory


@pytest.fixture()
def client(data_dir):
    """TestClient wired to the FastAPI app, storing into ``data_dir``."""
    from fastapi.testclient import TestClient

    from fleetdesk.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"x-user-token": "admiral"}
