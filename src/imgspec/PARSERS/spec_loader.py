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
Loaders turning Dockerfiles and YAML descriptors into ImageBuildSpec models.
"""
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import DescriptorError, DockerfileSyntaxError
from ..MODELS.dockerfile_ast import Instruction
from ..MODELS.image_spec import (
    SHELL, ArgStep, CopyStep, EnvStep, ImageBuildSpec, RunStep, WorkdirStep,
)
from ..REGISTRY.image_reference import ImageReference
from ..UTILS.string_interpolation import EnvironmentInterpolator
from .dockerfile_parser import DockerfileParser

# Valid Dockerfile instructions that have no meaning for a native image
IGNORED_INSTRUCTIONS = {
    "USER", "VOLUME", "HEALTHCHECK", "SHELL", "STOPSIGNAL", "ONBUILD", "MAINTAINER",
}


class SpecLoader:
    """
    Builds ImageBuildSpec models from image descriptors.
    """
    def __init__(self, parser: Optional[DockerfileParser] = None):
        self.parser = parser or DockerfileParser()

    def from_dockerfile(self, dockerfile_path: str, name: str,
                        build_args: Optional[Dict[str, str]] = None) -> ImageBuildSpec:
        """
        Parses a Dockerfile and converts it into a specification.

        :param dockerfile_path: Path to the Dockerfile.
        :param name: Name to give the image.
        :param build_args: Values for ARG instructions.
        :return: The image specification.
        """
        instructions = self.parser.parse(dockerfile_path)
        return self.from_instructions(instructions, name, build_args)

    def from_string(self, content: str, name: str,
                    build_args: Optional[Dict[str, str]] = None) -> ImageBuildSpec:
        instructions = self.parser.parse_from_string(content)
        return self.from_instructions(instructions, name, build_args)

    def from_instructions(self, instructions: List[Instruction], name: str,
                          build_args: Optional[Dict[str, str]] = None) -> ImageBuildSpec:
        """
        Converts parsed instructions, in order, into a specification.

        :raises DockerfileSyntaxError: On a missing or repeated FROM, an
            unknown instruction or malformed arguments.
        """
        build_args = dict(build_args or {})
        spec = ImageBuildSpec(name=name, base_image="")
        scope: Dict[str, str] = {}
        used_args = set()
        seen_from = False

        for inst in instructions:
            cmd = inst.instruction
            args = inst.arguments

            if not seen_from and cmd not in ("FROM", "ARG"):
                raise DockerfileSyntaxError(f"{cmd} before FROM", inst.line)

            if cmd == "FROM":
                if seen_from:
                    raise DockerfileSyntaxError("multi-stage builds are not supported", inst.line)
                spec.base_image = self._base_image(inst, scope)
                seen_from = True
            elif cmd == "ARG":
                declared = {}
                for arg in args:
                    key, _, default = arg.partition("=")
                    if key in build_args:
                        value = build_args[key]
                        used_args.add(key)
                    elif "=" in arg:
                        value = self._expand(default, scope)
                    else:
                        continue
                    scope[key] = value
                    declared[key] = value
                if seen_from and declared:
                    spec.build_args.update(declared)
                    spec.steps.append(ArgStep(values=declared))
            elif cmd == "WORKDIR":
                spec.steps.append(WorkdirStep(path=self._expand(args[0], scope)))
            elif cmd in ("COPY", "ADD"):
                spec.steps.append(self._copy_step(inst, scope))
            elif cmd == "RUN":
                if inst.exec_form:
                    spec.steps.append(RunStep(command=args, shell=False))
                else:
                    spec.steps.append(RunStep(command=[args[0]]))
            elif cmd == "ENV":
                values = {}
                for arg in args:
                    key, _, value = arg.partition("=")
                    values[key] = self._expand(value, scope)
                    scope[key] = values[key]
                spec.env.update(values)
                spec.steps.append(EnvStep(values=values))
            elif cmd == "LABEL":
                for arg in args:
                    key, _, value = arg.partition("=")
                    spec.labels[key] = self._expand(value, scope)
            elif cmd == "EXPOSE":
                spec.exposed_ports.extend(self._ports(inst, scope))
            elif cmd == "CMD":
                spec.cmd = self._command(inst)
            elif cmd == "ENTRYPOINT":
                spec.entrypoint = self._command(inst)
            elif cmd in IGNORED_INSTRUCTIONS:
                print(f"Warning: {cmd} is not supported for native images, skipping (line {inst.line})")
            else:
                raise DockerfileSyntaxError(f"unknown instruction: {cmd}", inst.line)

        if not seen_from:
            raise DockerfileSyntaxError("no FROM instruction")

        for key in sorted(set(build_args) - used_args):
            print(f"Warning: build argument {key} was not consumed by any ARG")

        return spec

    def from_yaml(self, yaml_path: str, name: Optional[str] = None) -> ImageBuildSpec:
        """
        Loads a specification from a YAML descriptor whose keys mirror the
        ImageBuildSpec fields.

        :param yaml_path: Path to the YAML file.
        :param name: Overrides the `name` key of the file.
        """
        with open(yaml_path, 'r') as f:
            content = f.read()
        return self.from_yaml_string(content, name or os.path.basename(os.path.dirname(os.path.abspath(yaml_path))))

    def from_yaml_string(self, content: str, name: Optional[str] = None) -> ImageBuildSpec:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise DescriptorError(f"Invalid YAML descriptor: {e}")
        if not isinstance(data, dict):
            raise DescriptorError("YAML descriptor must be a mapping")

        if name and not data.get("name"):
            data["name"] = name
        try:
            spec = ImageBuildSpec.model_validate(data)
            ImageReference.parse(spec.base_image)
        except (ValidationError, ValueError) as e:
            raise DescriptorError(f"Invalid image descriptor: {e}")
        return spec

    def _base_image(self, inst: Instruction, scope: Dict[str, str]) -> str:
        tokens = [t for t in inst.arguments[0].split() if not t.startswith("--")]
        if not tokens:
            raise DockerfileSyntaxError("FROM requires an image reference", inst.line)
        if len(tokens) == 3 and tokens[1].lower() == "as":
            tokens = tokens[:1]
        if len(tokens) != 1:
            raise DockerfileSyntaxError(f"invalid FROM: {inst.arguments[0]}", inst.line)
        reference = self._expand(tokens[0], scope)
        try:
            ImageReference.parse(reference)
        except ValueError as e:
            raise DockerfileSyntaxError(str(e), inst.line)
        return reference

    def _copy_step(self, inst: Instruction, scope: Dict[str, str]) -> CopyStep:
        tokens = []
        for token in inst.arguments:
            if token.startswith("--"):
                if token.startswith("--from"):
                    raise DockerfileSyntaxError("COPY --from is not supported", inst.line)
                print(f"Warning: ignoring {inst.instruction} flag {token} (line {inst.line})")
                continue
            tokens.append(self._expand(token, scope))

        if len(tokens) < 2:
            raise DockerfileSyntaxError(f"{inst.instruction} requires a source and a destination", inst.line)
        sources, destination = tokens[:-1], tokens[-1]
        for source in sources:
            if "://" in source:
                raise DockerfileSyntaxError(f"remote sources are not supported: {source}", inst.line)
        return CopyStep(sources=sources, destination=destination)

    def _ports(self, inst: Instruction, scope: Dict[str, str]) -> List[int]:
        ports = []
        for token in inst.arguments:
            port = self._expand(token, scope).split("/", 1)[0]
            if not port.isdigit() or not 0 < int(port) < 65536:
                raise DockerfileSyntaxError(f"invalid port: {token}", inst.line)
            ports.append(int(port))
        return ports

    def _command(self, inst: Instruction) -> List[str]:
        if inst.exec_form:
            return list(inst.arguments)
        return SHELL + [inst.arguments[0]]

    def _expand(self, value: Any, scope: Dict[str, str]) -> str:
        return EnvironmentInterpolator.interpolate(str(value), scope)
