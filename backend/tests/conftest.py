"""
Shared fixtures for the compressor test suite.

Provides: temp storage areas, registry and orchestrator instances, a
TestClient bound to temp directories and an intake-file factory.
"""

import pytest
from fastapi.testclient import TestClient

from backend.app.services.progress.models import SourceFile, TransformSettings
from backend.app.services.progress.tracker import BatchRegistry
from backend.app.services.storage.local import LocalStorageService


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture
def storage(upload_dir, output_dir):
    return LocalStorageService(upload_dir=str(upload_dir), output_dir=str(output_dir))


@pytest.fixture
def registry():
    return BatchRegistry()


@pytest.fixture
def settings():
    return TransformSettings(max_width=800, max_height=600, quality=70)


@pytest.fixture
def make_source(upload_dir):
    """Write bytes into the intake area and return a SourceFile."""
    counter = {"n": 0}

    def _make(name: str, data: bytes) -> SourceFile:
        counter["n"] += 1
        path = upload_dir / f"test_{counter['n']:04d}_{name}"
        path.write_bytes(data)
        return SourceFile(original_name=name, stored_path=str(path), size=len(data))

    return _make


@pytest.fixture
def client(upload_dir, output_dir):
    from backend.main import create_app

    app = create_app({
        "upload_dir": str(upload_dir),
        "output_dir": str(output_dir),
        "sweep_interval_seconds": 0,
        "worker_join_timeout_seconds": 5,
    })
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def orchestrator(registry, storage):
    from backend.app.workflow.batch_manager import BatchOrchestrator

    orch = BatchOrchestrator(registry=registry, storage=storage, worker_join_timeout_seconds=5)
    yield orch
    orch.shutdown()
