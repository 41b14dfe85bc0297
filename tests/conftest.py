import io
import json

import pytest
from PIL import Image

from death_store import DeathStore
from main import app as flask_app


@pytest.fixture
def app(tmp_path):
    saved = dict(flask_app.config)
    flask_app.config.update(
        TESTING=True,
        DATA_DIR=str(tmp_path / "data"),
        UPLOAD_DIR=str(tmp_path / "uploads"),
    )
    yield flask_app
    flask_app.config.clear()
    flask_app.config.update(saved)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return DeathStore.in_dir(app.config["DATA_DIR"])


@pytest.fixture
def upload_dir(app):
    return app.config["UPLOAD_DIR"]


def image_bytes(fmt: str, size=(4, 3), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def post_death(client, payload, screenshot=None):
    data = {"death": payload if isinstance(payload, str) else json.dumps(payload)}
    if screenshot is not None:
        data["screenshot"] = screenshot
    return client.post("/upload", data=data, content_type="multipart/form-data")
