import textwrap

import pytest

from imgspec.errors import DescriptorError, DockerfileSyntaxError
from imgspec.MODELS.image_spec import ArgStep, CopyStep, EnvStep, RunStep, WorkdirStep
from imgspec.PARSERS.spec_loader import SpecLoader

REFERENCE = textwrap.dedent("""
    # Python base image
    FROM python:3.9-slim
    WORKDIR /app
    COPY . .
    RUN pip install flask
    CMD ["python", "main.py"]
""")


def test_reference_descriptor():
    spec = SpecLoader().from_string(REFERENCE, "web")
    assert spec.name == "web"
    assert spec.base_image == "python:3.9-slim"
    assert spec.steps == [
        WorkdirStep(path="/app"),
        CopyStep(sources=["."], destination="."),
        RunStep(command=["pip install flask"]),
    ]
    assert spec.cmd == ["python", "main.py"]
    assert spec.working_dir == "/app"
    assert spec.entrypoint_script() == "main.py"


def test_args_and_env_expand_in_later_instructions():
    content = textwrap.dedent("""
        ARG PY=3.9
        FROM python:${PY}-slim
        ARG APP_DIR=/srv
        ENV HOME_DIR=$APP_DIR/home PORT=8080
        WORKDIR ${HOME_DIR}
        COPY src/ ${HOME_DIR}/src/
        EXPOSE $PORT
        LABEL owner=${OWNER:-nobody}
    """)
    spec = SpecLoader().from_string(content, "svc", build_args={"APP_DIR": "/opt"})
    assert spec.base_image == "python:3.9-slim"
    assert spec.build_args == {"APP_DIR": "/opt"}
    assert spec.env == {"HOME_DIR": "/opt/home", "PORT": "8080"}
    assert spec.steps[0] == ArgStep(values={"APP_DIR": "/opt"})
    assert spec.steps[1] == EnvStep(values={"HOME_DIR": "/opt/home", "PORT": "8080"})
    assert spec.working_dir == "/opt/home"
    assert spec.steps[3] == CopyStep(sources=["src/"], destination="/opt/home/src/")
    assert spec.exposed_ports == [8080]
    assert spec.labels == {"owner": "nobody"}


def test_arg_declarations_keep_their_position():
    content = "FROM python:3.9-slim\nRUN echo early\nARG VERSION=1.2 BARE\nRUN echo $VERSION\n"
    spec = SpecLoader().from_string(content, "svc")
    assert spec.steps == [
        RunStep(command=["echo early"]),
        ArgStep(values={"VERSION": "1.2"}),
        RunStep(command=["echo $VERSION"]),
    ]


def test_run_keeps_variables_for_the_shell():
    spec = SpecLoader().from_string("FROM python:3.9-slim\nENV A=1\nRUN echo $A\n", "svc")
    assert spec.steps[-1] == RunStep(command=["echo $A"])


def test_exec_form_run_and_shell_form_cmd():
    content = 'FROM python:3.9-slim\nRUN ["pip", "install", "flask"]\nCMD python main.py\n'
    spec = SpecLoader().from_string(content, "svc")
    assert spec.steps[0] == RunStep(command=["pip", "install", "flask"], shell=False)
    assert spec.cmd == ["/bin/sh", "-c", "python main.py"]
    assert spec.entrypoint_script() == "main.py"


def test_entrypoint_and_cmd_merge():
    content = 'FROM python:3.9-slim\nENTRYPOINT ["python"]\nCMD ["main.py", "--debug"]\n'
    spec = SpecLoader().from_string(content, "svc")
    assert spec.start_command() == ["python", "main.py", "--debug"]


def test_ignored_instruction_warns(capsys):
    spec = SpecLoader().from_string("FROM python:3.9-slim\nUSER app\nCMD [\"python\", \"main.py\"]\n", "svc")
    assert spec.cmd == ["python", "main.py"]
    assert "USER is not supported" in capsys.readouterr().out


def test_unused_build_arg_warns(capsys):
    SpecLoader().from_string("FROM python:3.9-slim\n", "svc", build_args={"UNUSED": "1"})
    assert "UNUSED" in capsys.readouterr().out


@pytest.mark.parametrize("content, message", [
    ("WORKDIR /app\n", "WORKDIR before FROM"),
    ("ARG X=1\n", "no FROM"),
    ("FROM python:3.9 AS build\nFROM python:3.9-slim\n", "multi-stage"),
    ("FROM python:3.9-slim\nFROBNICATE now\n", "unknown instruction"),
    ("FROM python:3.9-slim\nCOPY --from=build /a /b\n", "--from"),
    ("FROM python:3.9-slim\nCOPY onlyone\n", "source and a destination"),
    ("FROM python:3.9-slim\nADD https://example.com/x.tgz /x\n", "remote"),
    ("FROM python:3.9-slim\nEXPOSE http\n", "invalid port"),
])
def test_invalid_descriptors(content, message):
    with pytest.raises(DockerfileSyntaxError, match=message):
        SpecLoader().from_string(content, "svc")


def test_from_dockerfile(tmp_path):
    path = tmp_path / "Dockerfile"
    path.write_text(REFERENCE)
    spec = SpecLoader().from_dockerfile(str(path), "web")
    assert spec.cmd == ["python", "main.py"]


def test_from_yaml(tmp_path):
    path = tmp_path / "imgspec.yaml"
    path.write_text(textwrap.dedent("""
        base_image: python:3.9-slim
        steps:
          - kind: workdir
            path: /app
          - kind: copy
            sources: ["."]
            destination: "."
          - kind: run
            command: ["pip install flask"]
        cmd: ["python", "main.py"]
    """))
    spec = SpecLoader().from_yaml(str(path), "web")
    assert spec.name == "web"
    assert spec.steps[2] == RunStep(command=["pip install flask"])
    assert spec.working_dir == "/app"


@pytest.mark.parametrize("content", [
    "- just\n- a list\n",
    "base_image: python:3.9-slim\nsteps:\n  - kind: teleport\n",
    "base_image: ''\n",
    "base_image: [unclosed\n",
])
def test_invalid_yaml(content):
    with pytest.raises(DescriptorError):
        SpecLoader().from_yaml_string(content, "web")
