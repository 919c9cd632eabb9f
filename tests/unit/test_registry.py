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
Unit tests for base image references.
"""
import pytest
from imgspec.REGISTRY.image_reference import ImageReference


class TestImageReference:
    """Tests for ImageReference parsing."""

    def test_parse_reference_descriptor_base(self):
        """The base image of the reference descriptor."""
        ref = ImageReference.parse("python:3.9-slim")
        assert ref.registry == "docker.io"
        assert ref.repository == "library/python"
        assert ref.tag == "3.9-slim"
        assert ref.python_version == "3.9"
        assert ref.variant == "slim"

    def test_parse_simple_name(self):
        """Untagged references default to latest."""
        ref = ImageReference.parse("python")
        assert ref.repository == "library/python"
        assert ref.tag == "latest"
        assert ref.python_version is None

    def test_parse_user_image(self):
        ref = ImageReference.parse("myuser/myimage:v1")
        assert ref.registry == "docker.io"
        assert ref.repository == "myuser/myimage"
        assert ref.tag == "v1"
        assert ref.python_version is None

    def test_parse_full_reference(self):
        ref = ImageReference.parse("ghcr.io/org/python:3.12.1-bookworm")
        assert ref.registry == "ghcr.io"
        assert ref.repository == "org/python"
        assert ref.python_version == "3.12"
        assert ref.variant == "bookworm"

    def test_parse_with_digest(self):
        ref = ImageReference.parse("python@sha256:abc123")
        assert ref.repository == "library/python"
        assert ref.digest == "sha256:abc123"
        assert ref.tag is None
        assert ref.short_name == "python@sha256:abc123"

    def test_parse_localhost_registry(self):
        ref = ImageReference.parse("localhost:5000/myimage:v1")
        assert ref.registry == "localhost:5000"
        assert ref.repository == "myimage"
        assert ref.tag == "v1"

    def test_major_only_and_prerelease_tags(self):
        assert ImageReference.parse("python:3").python_version == "3"
        assert ImageReference.parse("python:3.13.0rc1-slim").python_version == "3.13"
        assert ImageReference.parse("python:slim").python_version is None

    def test_names(self):
        ref = ImageReference.parse("python:3.9-slim")
        assert ref.full_name == "docker.io/library/python:3.9-slim"
        assert ref.short_name == "python:3.9-slim"
        assert str(ref) == "python:3.9-slim"

    @pytest.mark.parametrize("reference", ["", "   ", "python:", "python 3.9"])
    def test_invalid_reference_raises(self, reference):
        with pytest.raises(ValueError):
            ImageReference.parse(reference)
