from pathlib import Path

import httpx
import pytest

from root_server.core.config import Settings as RootSettings
from root_server.main import create_app as create_root_app

IMAGE_BYTES = bytes(range(256)) * 64


@pytest.fixture
def serve_dir(tmp_path: Path) -> Path:
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_text("<h1>root</h1>")
    (root / "image.png").write_bytes(IMAGE_BYTES)
    (root / "docs").mkdir()
    (root / "docs" / "guide.txt").write_text("guide")
    (root / "assets").mkdir()
    (root / "assets" / "index.html").write_text("<h1>assets</h1>")
    return root


@pytest.fixture
def root_app(serve_dir: Path):
    return create_root_app(RootSettings(SERVE_DIR=serve_dir))


@pytest.fixture
def origin_transport(root_app) -> httpx.ASGITransport:
    """
    Transport wiring a cdn server straight to the in-process root server.
    """
    return httpx.ASGITransport(app=root_app)


@pytest.fixture
def image_bytes() -> bytes:
    return IMAGE_BYTES
