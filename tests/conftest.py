import io
import os

import pytest

from app import app as flask_app
from excel_registry import SubmissionRegistry, StatusStore
from file_store import FileStore


@pytest.fixture
def upload_folder(tmp_path):
    folder = tmp_path / "uploads"
    folder.mkdir()
    return str(folder)


@pytest.fixture
def registry_file(upload_folder):
    return os.path.join(upload_folder, "data.xlsx")


@pytest.fixture
def status_file(upload_folder):
    return os.path.join(upload_folder, "status.json")


@pytest.fixture
def registry(registry_file):
    return SubmissionRegistry(registry_file)


@pytest.fixture
def status_store(status_file):
    return StatusStore(status_file)


@pytest.fixture
def file_store(upload_folder, registry_file, status_file):
    return FileStore(upload_folder, excluded=[registry_file, status_file, status_file + ".tmp"])


@pytest.fixture
def app(upload_folder, registry_file, status_file):
    keys = ['UPLOAD_FOLDER', 'REGISTRY_FILE', 'STATUS_FILE', 'ADMIN_PASSWORD', 'TESTING']
    saved = {key: flask_app.config.get(key) for key in keys}
    flask_app.config.update(
        UPLOAD_FOLDER=upload_folder,
        REGISTRY_FILE=registry_file,
        STATUS_FILE=status_file,
        ADMIN_PASSWORD="s3cret",
        TESTING=True,
    )
    yield flask_app
    flask_app.config.update(saved)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    response = client.post("/admin", data={"password": "s3cret"})
    assert response.status_code == 200
    return client


def upload_form(rollno, name="Asha", batch="", filename="main.py", content=b"print('hi')\n"):
    data = {"name": name, "rollno": rollno, "batch": batch}
    if filename is not None:
        data["codefile"] = (io.BytesIO(content), filename)
    return data
