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
Runtime settings, read from IMGSPEC_* environment variables and an optional
.env file in the current directory.
"""
import os
import sys
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

ENV_PREFIX = "IMGSPEC_"


class Settings(BaseModel):
    """
    Settings shared by the builder, the image store and the runner.
    """
    home: Path = Path.home() / ".imgspec"
    python: str = sys.executable
    with_pip: bool = True

    @property
    def images_dir(self) -> Path:
        return self.home / "images"

    @classmethod
    def load(cls, dotenv_path: Optional[str] = None,
             environ: Optional[Dict[str, str]] = None) -> "Settings":
        """
        Builds settings from the environment.

        :param dotenv_path: Explicit .env file. Defaults to ./.env when present.
        :param environ: Environment mapping to read instead of os.environ.
        :return: The resolved settings.
        """
        if environ is None:
            load_dotenv(dotenv_path or os.path.join(os.getcwd(), ".env"), override=False)
            environ = dict(os.environ)

        values = {}
        for field in cls.model_fields:
            key = f"{ENV_PREFIX}{field.upper()}"
            if environ.get(key):
                values[field] = environ[key]
        return cls(**values)
