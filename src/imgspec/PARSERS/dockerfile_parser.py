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
Parsers for Dockerfiles, extracting instructions and arguments.
"""
import json
import re
import shlex
from typing import List, Tuple
from ..MODELS.dockerfile_ast import Instruction, DockerfileAST
from ..errors import DockerfileSyntaxError

INSTRUCTION_PATTERN = re.compile(r'^\s*([A-Za-z]+)(?:\s+(.*))?$', re.DOTALL)

# Instructions whose shell-form arguments are key=value pairs
KEY_VALUE_INSTRUCTIONS = {"ENV", "LABEL", "ARG"}
# Instructions whose shell-form arguments are whitespace separated tokens
TOKEN_INSTRUCTIONS = {"COPY", "ADD", "EXPOSE"}

class DockerfileParser:
    """
    Parser for Dockerfile instructions.
    """
    def parse(self, dockerfile_path: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            List[Instruction]: List of parsed instructions.
        """
        with open(dockerfile_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_ast(self, dockerfile_path: str) -> DockerfileAST:
        """Parses a Dockerfile into a DockerfileAST."""
        return DockerfileAST(instructions=self.parse(dockerfile_path))

    def parse_from_string(self, content: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a string content.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            List[Instruction]: List of parsed instructions.

        Raises:
            DockerfileSyntaxError: If a line is not a valid instruction.
        """
        instructions = []

        for line_no, text in self._logical_lines(content):
            match = INSTRUCTION_PATTERN.match(text)
            if not match:
                raise DockerfileSyntaxError(f"unknown instruction: {text.strip()[:40]}", line_no)

            inst = match.group(1).upper()
            args_str = (match.group(2) or "").strip()
            if not args_str:
                raise DockerfileSyntaxError(f"{inst} requires at least one argument", line_no)

            args, exec_form = self._parse_arguments(inst, args_str, line_no)
            instructions.append(Instruction(
                instruction=inst,
                arguments=args,
                raw=text.strip(),
                line=line_no,
                exec_form=exec_form,
            ))

        return instructions

    def _logical_lines(self, content: str) -> List[Tuple[int, str]]:
        """
        Joins backslash continuations and drops comments and blank lines.
        Comment lines inside a continuation are skipped, as Docker does.
        """
        logical = []
        buffer = None
        start = 0

        for line_no, line in enumerate(content.splitlines(), start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith('#'):
                continue

            if buffer is None:
                buffer = ""
                start = line_no

            if line.rstrip().endswith('\\'):
                buffer += line.rstrip()[:-1] + " "
                continue

            logical.append((start, buffer + line))
            buffer = None

        # Dangling continuation on the last line
        if buffer is not None and buffer.strip():
            logical.append((start, buffer))

        return logical

    def _parse_arguments(self, inst: str, args_str: str, line_no: int) -> Tuple[List[str], bool]:
        """
        Splits the argument string of one instruction.

        Returns the arguments and whether they were given in exec (JSON) form.
        """
        if args_str.startswith('[') and args_str.endswith(']'):
            try:
                args = json.loads(args_str)
            except json.JSONDecodeError:
                # Not valid JSON, treat as shell form
                args = None
            if isinstance(args, list) and all(isinstance(a, str) for a in args):
                return args, True

        if inst in KEY_VALUE_INSTRUCTIONS:
            return self._parse_key_values(inst, args_str, line_no), False
        if inst in TOKEN_INSTRUCTIONS:
            return args_str.split(), False
        return [args_str], False

    def _parse_key_values(self, inst: str, args_str: str, line_no: int) -> List[str]:
        """
        Normalizes `KEY=VALUE ...` and the legacy `KEY VALUE` form into a list
        of `KEY=VALUE` strings. A bare `ARG NAME` stays `NAME`.
        """
        try:
            tokens = shlex.split(args_str, posix=True)
        except ValueError as e:
            raise DockerfileSyntaxError(f"{inst}: {e}", line_no)

        if not tokens:
            raise DockerfileSyntaxError(f"{inst} requires at least one argument", line_no)

        if '=' not in tokens[0]:
            if inst == "ARG" and len(tokens) == 1:
                return tokens
            if len(tokens) < 2:
                raise DockerfileSyntaxError(f"{inst} {tokens[0]} is missing a value", line_no)
            # Legacy form: everything after the key is the value
            key, value = args_str.split(None, 1)
            return [f"{key}={value.strip()}"]

        for token in tokens:
            if '=' not in token and inst != "ARG":
                raise DockerfileSyntaxError(f"{inst} expects KEY=VALUE pairs, got {token!r}", line_no)
        return tokens
