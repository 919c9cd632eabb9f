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
Base image reference parsing.
Parses references like 'python:3.9-slim' or 'ghcr.io/org/python:3.12'.
"""

import re
from typing import Optional
from dataclasses import dataclass

PYTHON_TAG = re.compile(r'^(\d+)(?:\.(\d+))?(?:\.\d+)?(?:[a-z]+\d*)?(?:-(.+))?$')


@dataclass
class ImageReference:
    """
    Parsed base image reference.

    Examples:
        - python -> docker.io/library/python:latest
        - python:3.9-slim -> docker.io/library/python:3.9-slim
        - localhost:5000/team/base:v1 -> localhost:5000/team/base:v1
        - python@sha256:abc123... -> docker.io/library/python@sha256:abc123...
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'python:3.9-slim')

        Returns:
            Parsed ImageReference object.

        Raises:
            ValueError: If the reference is empty or contains whitespace.
        """
        reference = (reference or "").strip()
        if not reference:
            raise ValueError("Empty image reference")
        if any(c.isspace() for c in reference):
            raise ValueError(f"Invalid image reference: {reference!r}")

        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)

        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1:
            after_colon = reference[last_colon + 1:]
            # localhost:5000/image has a port, not a tag
            if "/" not in after_colon:
                tag = after_colon
                reference = reference[:last_colon]

        parts = reference.split("/")
        first = parts[0]
        if len(parts) > 1 and ("." in first or ":" in first or first == "localhost"):
            registry = first
            repository = "/".join(parts[1:])
        else:
            registry = cls.DEFAULT_REGISTRY
            repository = reference if len(parts) > 1 else f"library/{reference}"

        if not repository or not tag and tag is not None:
            raise ValueError(f"Invalid image reference: {reference!r}")

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest)

    @property
    def name(self) -> str:
        """Last path component of the repository, e.g. 'python'."""
        return self.repository.rsplit("/", 1)[-1]

    @property
    def full_name(self) -> str:
        """Get full image name with registry."""
        name = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    @property
    def short_name(self) -> str:
        """Get short image name (without registry if default)."""
        if self.registry != self.DEFAULT_REGISTRY:
            return self.full_name
        repo = self.repository
        if repo.startswith("library/"):
            repo = repo[len("library/"):]
        if self.digest:
            return f"{repo}@{self.digest}"
        return f"{repo}:{self.tag}" if self.tag else repo

    @property
    def python_version(self) -> Optional[str]:
        """
        Interpreter version implied by a python image tag: '3.9' for
        'python:3.9-slim', '3' for 'python:3'. None for other images or
        tags without a version.
        """
        if self.name != "python" or not self.tag:
            return None
        match = PYTHON_TAG.match(self.tag)
        if not match:
            return None
        major, minor = match.group(1), match.group(2)
        return f"{major}.{minor}" if minor else major

    @property
    def variant(self) -> Optional[str]:
        """Tag variant, e.g. 'slim' for 'python:3.9-slim'."""
        if not self.tag:
            return None
        match = PYTHON_TAG.match(self.tag)
        if match:
            return match.group(3)
        return None

    def __str__(self) -> str:
        return self.short_name

    def __repr__(self) -> str:
        return f"ImageReference({self.full_name})"
