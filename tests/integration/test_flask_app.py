import importlib.util
import os
import sys

import pytest

pytest.importorskip("flask")

APP_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "examples", "flask_app")


@pytest.fixture
def client(monkeypatch):
    spec = importlib.util.spec_from_file_location("flask_app_main", os.path.join(APP_DIR, "main.py"))
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, "flask_app_main", module)
    spec.loader.exec_module(module)
    module.app.config["TESTING"] = True
    return module.app.test_client()


def test_index(client, monkeypatch):
    monkeypatch.setenv("TARGET", "imgspec")
    response = client.get("/")
    assert response.status_code == 200
    assert response.data == b"Hello imgspec!\n"


def test_healthz(client):
    response = client.get("/healthz")
    assert response.get_json() == {"status": "ok"}


def test_example_dockerfile_is_the_reference_descriptor():
    from imgspec.MODELS.image_spec import ImageBuildSpec
    from imgspec.PARSERS.spec_loader import SpecLoader

    spec = SpecLoader().from_dockerfile(os.path.join(APP_DIR, "Dockerfile"), "flask_app")
    assert spec == ImageBuildSpec.default("flask_app")
