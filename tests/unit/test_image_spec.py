import pytest

from imgspec.MODELS.image_spec import (
    ImageBuildSpec, RunStep, WorkdirStep, find_entrypoint_script, merge_command, resolve_workdir,
)


def test_default_is_the_reference_descriptor():
    spec = ImageBuildSpec.default("web")
    assert spec.base_image == "python:3.9-slim"
    assert spec.working_dir == "/app"
    assert spec.steps[-1] == RunStep(command=["pip install flask"])
    assert spec.start_command() == ["python", "main.py"]
    assert spec.entrypoint_script() == "main.py"


def test_working_dir_resolves_relative_steps():
    spec = ImageBuildSpec(name="x", steps=[WorkdirStep(path="/srv"), WorkdirStep(path="app/../web")])
    assert spec.working_dir == "/srv/web"
    assert ImageBuildSpec(name="x").working_dir == "/"
    assert resolve_workdir("/app", "/abs") == "/abs"


def test_shell_form_entrypoint_ignores_cmd():
    spec = ImageBuildSpec(name="x", entrypoint=["/bin/sh", "-c", "python main.py"], cmd=["ignored"])
    assert spec.start_command() == ["/bin/sh", "-c", "python main.py"]


@pytest.mark.parametrize("command, script", [
    (["python", "main.py"], "main.py"),
    (["/usr/local/bin/python3.9", "-u", "src/app.py", "--port", "80"], "src/app.py"),
    (["/bin/sh", "-c", "python main.py --debug"], "main.py"),
    (["python", "-m", "flask", "run"], None),
    (["python", "-c", "print(1)"], None),
    (["gunicorn", "main:app"], None),
    (["python"], None),
    ([], None),
])
def test_find_entrypoint_script(command, script):
    assert find_entrypoint_script(command) == script


def test_canonical_json_is_stable():
    a = ImageBuildSpec(name="x", env={"B": "2", "A": "1"})
    b = ImageBuildSpec(name="x", env={"A": "1", "B": "2"})
    assert a.canonical_json() == b.canonical_json()
    assert a.canonical_json() != ImageBuildSpec(name="y").canonical_json()


def test_merge_command_rules():
    assert merge_command([], ["python", "main.py"]) == ["python", "main.py"]
    assert merge_command(["python"], ["main.py"]) == ["python", "main.py"]
    assert merge_command(["/bin/sh", "-c", "python app.py"], ["ignored"]) == ["/bin/sh", "-c", "python app.py"]
