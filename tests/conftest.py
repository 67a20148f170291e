import os
import shutil
from pathlib import Path

import pytest

# Keep the global settings instance away from the developer's data directory
os.environ.setdefault("DATA_DIR", "")
os.environ.setdefault("SEED_ON_STARTUP", "true")

from fastapi.testclient import TestClient  # noqa: E402

from contract_runtime.config import Settings  # noqa: E402
from contract_runtime.core.runtime import ContractRuntime  # noqa: E402
from contract_runtime.core.store import StoreRegistry  # noqa: E402
from contract_runtime.main import create_app  # noqa: E402

SPECS_DIR = Path(__file__).resolve().parents[1] / "specs"

PERSON_JOHN = "3f0c1c1e-6a51-4c47-9d1a-0d6f2b1a0001"
PERSON_JOHANNA = "3f0c1c1e-6a51-4c47-9d1a-0d6f2b1a0002"
TASK_PENDING = "7a1e0b52-1c1f-4d55-8f0e-5b8f6a2c0001"
TASK_IN_PROGRESS = "7a1e0b52-1c1f-4d55-8f0e-5b8f6a2c0002"
TASK_COMPLETED = "7a1e0b52-1c1f-4d55-8f0e-5b8f6a2c0003"


@pytest.fixture
def specs_dir(tmp_path):
    """A private copy of the sample specs that tests may modify."""
    target = tmp_path / "specs"
    shutil.copytree(SPECS_DIR, target)
    return target


@pytest.fixture
def settings(specs_dir):
    return Settings(
        _env_file=None,
        specs_dirs=[str(specs_dir)],
        data_dir="",
        seed_on_startup=True,
        reset_on_startup=False,
    )


@pytest.fixture
def runtime(settings):
    rt = ContractRuntime.bootstrap(settings)
    yield rt
    rt.close()


@pytest.fixture
def registry():
    reg = StoreRegistry()
    yield reg
    reg.close_all()


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def caller(caller_id="worker-1", role="caseworker"):
    """Caller context headers for trigger calls."""
    return {"X-Caller-Id": caller_id, "X-Caller-Role": role}
