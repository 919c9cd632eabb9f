# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Converters for rendering image specifications as Dockerfiles.
"""
import json
import os
from jinja2 import Template
from ..MODELS.image_spec import SHELL, ArgStep, CopyStep, EnvStep, ImageBuildSpec, RunStep, WorkdirStep

DOCKERFILE_TEMPLATE = """\
FROM {{ base_image }}
{% for key, value in build_args.items() %}
ARG {{ key }}={{ value }}
{% endfor %}
{% for key, value in labels.items() %}
LABEL {{ key }}={{ value }}
{% endfor %}
{% for line in steps %}
{{ line }}
{% endfor %}
{% for port in exposed_ports %}
EXPOSE {{ port }}
{% endfor %}
{% if entrypoint %}
ENTRYPOINT {{ entrypoint }}
{% endif %}
{% if cmd %}
CMD {{ cmd }}
{% endif %}
"""


class DockerfileConverter:
    """
    Renders an ImageBuildSpec as Dockerfile text that loads back into the
    same specification.
    """

    def __init__(self):
        self.template = Template(DOCKERFILE_TEMPLATE, trim_blocks=True, lstrip_blocks=True)

    def render(self, spec: ImageBuildSpec) -> str:
        """
        Renders the Dockerfile for a specification.

        :param spec: The image specification.
        :return: Dockerfile content.
        """
        return self.template.render(
            base_image=spec.base_image,
            build_args=self._undeclared_args(spec),
            labels={k: _quote(v) for k, v in spec.labels.items()},
            steps=[self._step(step) for step in spec.steps],
            exposed_ports=spec.exposed_ports,
            entrypoint=self._command(spec.entrypoint),
            cmd=self._command(spec.cmd),
        )

    def convert(self, spec: ImageBuildSpec, output_dir: str = ".", filename: str = "Dockerfile") -> str:
        """
        Writes the Dockerfile for a specification.

        :param spec: The image specification.
        :param output_dir: The directory the Dockerfile is written to.
        :return: The path of the written file.
        """
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, filename)
        with open(path, "w") as f:
            f.write(self.render(spec))
        print(f"Dockerfile generated at {path}")
        return path

    def _step(self, step) -> str:
        if isinstance(step, WorkdirStep):
            return f"WORKDIR {step.path}"
        if isinstance(step, CopyStep):
            paths = step.sources + [step.destination]
            if any(" " in p for p in paths):
                return "COPY " + json.dumps(paths)
            return "COPY " + " ".join(paths)
        if isinstance(step, RunStep):
            if step.shell:
                return "RUN " + " ".join(step.command)
            return "RUN " + json.dumps(step.command)
        if isinstance(step, EnvStep):
            return "ENV " + " ".join(f"{k}={_quote(v)}" for k, v in step.values.items())
        if isinstance(step, ArgStep):
            return "ARG " + " ".join(f"{k}={_quote(v)}" for k, v in step.values.items())
        raise TypeError(f"Unknown build step: {step!r}")

    def _undeclared_args(self, spec: ImageBuildSpec):
        """Build args no ARG step declares, written right after FROM."""
        declared = set()
        for step in spec.steps:
            if isinstance(step, ArgStep):
                declared.update(step.values)
        return {k: _quote(v) for k, v in spec.build_args.items() if k not in declared}

    def _command(self, command) -> str:
        if not command:
            return ""
        if len(command) == 3 and command[:2] == SHELL:
            return command[2]
        return json.dumps(command)


def _quote(value: str) -> str:
    """Double-quotes a value for ENV and LABEL, keeping `$` literal."""
    return json.dumps(value, ensure_ascii=False).replace("$", "\\$")
