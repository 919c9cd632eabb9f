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
Exceptions raised by imgspec.
"""
from typing import Optional


class ImgspecError(Exception):
    """Base class for all imgspec errors."""


class DescriptorError(ImgspecError):
    """Raised when an image descriptor does not describe a buildable image."""


class DockerfileSyntaxError(DescriptorError):
    """
    Raised when a Dockerfile cannot be parsed or does not describe a single
    buildable image.
    """
    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class BuildError(ImgspecError):
    """
    Raised when a build step fails. Carries the failing step and, for RUN
    steps, the exit code of the command.
    """
    def __init__(self, message: str, step: Optional[str] = None, exit_code: int = 1):
        self.step = step
        if exit_code < 0:
            # Killed by a signal, reported the way shells do
            exit_code = 128 - exit_code
        self.exit_code = exit_code or 1
        if step:
            message = f"{message} (step: {step})"
        super().__init__(message)


class ImageNotFoundError(ImgspecError):
    """Raised when an image reference does not match any stored image."""
    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"No such image: {reference}")
