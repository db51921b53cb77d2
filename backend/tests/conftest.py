"""Pytest configuration and shared fixtures."""
import os
import tempfile
from pathlib import Path

import pytest

# Keep logs and the default data file out of the source tree; must run
# before app.config is imported.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="ipam-tests-"))
os.environ.setdefault("IPAM_LOGS_DIR", str(_TEST_DIR / "logs"))
os.environ.setdefault("IPAM_LOG_FILE", str(_TEST_DIR / "logs" / "backend.log"))
os.environ.setdefault("IPAM_DATA_FILE", str(_TEST_DIR / "ipam.db"))

from app.services.ipam_store import IPAMStore  # noqa: E402
from app.services.provisioning import ProvisioningService  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """Empty store backed by a temp database."""
    store = IPAMStore(tmp_path / "ipam.db")
    yield store
    store.close()


@pytest.fixture
def service(store):
    return ProvisioningService(store, batch_size=500)
