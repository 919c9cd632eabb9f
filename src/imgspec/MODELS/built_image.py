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
Models representing built images as recorded in the local image store.
"""
import os
from typing import List, Optional
from pydantic import BaseModel

from .image_spec import ImageBuildSpec

class BuiltImage(BaseModel):
    """
    The result of a successful build: where the image lives on disk and the
    specification it was built from.
    """
    id: str
    tags: List[str] = []
    spec: ImageBuildSpec
    context_digest: str
    created: str
    path: str
    python: Optional[str] = None

    @property
    def short_id(self) -> str:
        return self.id.split(":", 1)[-1][:12]

    @property
    def rootfs(self) -> str:
        return os.path.join(self.path, "rootfs")

    @property
    def venv_path(self) -> str:
        return os.path.join(self.path, "venv")

    @property
    def bin_dir(self) -> str:
        return os.path.join(self.venv_path, "Scripts" if os.name == "nt" else "bin")

    def host_path(self, image_path: str) -> str:
        """Maps an absolute path inside the image onto the host filesystem."""
        return os.path.join(self.rootfs, image_path.lstrip("/"))

    @property
    def working_dir(self) -> str:
        """Host directory the start command runs in."""
        return self.host_path(self.spec.working_dir)
