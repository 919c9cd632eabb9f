import sys
import textwrap

import pytest

from imgspec.BUILDERS.image_builder import ImageBuilder
from imgspec.REGISTRY.image_store import ImageStore

MAIN_PY = textwrap.dedent("""
    import os
    import sys

    print("service starting in " + os.getcwd())
    print("GREETING=" + os.environ.get("GREETING", ""))
    sys.exit(int(os.environ.get("EXIT_CODE", "0")))
""")

# The reference descriptor, with an offline stand-in for the dependency install
DOCKERFILE = textwrap.dedent("""
    FROM python:3.9-slim
    WORKDIR /app
    COPY . .
    RUN echo installed > installed.txt
    CMD ["python", "main.py"]
""")


@pytest.fixture
def store(tmp_path):
    return ImageStore(str(tmp_path / "store"))


@pytest.fixture
def builder(store):
    # No pip keeps venv creation fast and offline
    return ImageBuilder(store, python=sys.executable, with_pip=False)


@pytest.fixture
def app_context(tmp_path):
    context = tmp_path / "app"
    context.mkdir()
    (context / "main.py").write_text(MAIN_PY)
    (context / "Dockerfile").write_text(DOCKERFILE)
    return context
