"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from filedrop.config import AppConfig, UploadSettings, set_config
from filedrop.files.storage import FileStorage
from filedrop.main import app


@pytest.fixture
def upload_dir(tmp_path):
    """Upload directory for one test (not created up front)."""
    return tmp_path / "uploads"


@pytest.fixture
def app_config(upload_dir):
    """Install a config pointing at the per-test upload directory."""
    config = AppConfig(uploads=UploadSettings(upload_dir=str(upload_dir)))
    set_config(config)
    FileStorage.reset_instance()
    yield config
    set_config(None)
    FileStorage.reset_instance()


@pytest.fixture
def api_client(app_config):
    """Provide a TestClient for the main FastAPI app.

    Lifespan is not entered, so no retention sweeper runs during API tests.
    """
    return TestClient(app)


def stored_names(upload_dir):
    """Names currently present in *upload_dir* (empty if it does not exist)."""
    if not upload_dir.exists():
        return []
    return sorted(p.name for p in upload_dir.iterdir())
