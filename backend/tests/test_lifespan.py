import io
import os

from fastapi.testclient import TestClient

from backend.main import create_app
from backend.tests.helpers import png_bytes


def _app(upload_dir, output_dir):
    return create_app({
        "upload_dir": str(upload_dir),
        "output_dir": str(output_dir),
        "sweep_interval_seconds": 0,
    })


def test_startup_sweep_clears_leftovers(upload_dir, output_dir):
    app = _app(upload_dir, output_dir)
    (upload_dir / "stale_0000_a.png").write_bytes(b"old upload")
    (output_dir / "stale.zip").write_bytes(b"old archive")

    with TestClient(app) as client:
        assert os.listdir(upload_dir) == []
        assert os.listdir(output_dir) == []
        assert client.get("/health").status_code == 200


def test_shutdown_stops_workers_and_empties_storage(upload_dir, output_dir):
    app = _app(upload_dir, output_dir)
    files = [
        ("images", (f"img{i}.png", io.BytesIO(png_bytes(size=(1500, 1500)))))
        for i in range(10)
    ]

    with TestClient(app) as client:
        response = client.post("/compress", files=files)
        assert response.status_code == 200
        handles = list(app.state.orchestrator._handles.values())

    assert all(not h.process.is_alive() for h in handles)
    assert os.listdir(upload_dir) == []
    assert os.listdir(output_dir) == []
