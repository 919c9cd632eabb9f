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
Managers for assembling the environment an image's processes run with.
"""
import os
from typing import Dict, List, Optional
from ..PARSERS.env_parser import EnvParser

# Host variables that would point a process at the wrong interpreter
HOST_ONLY = ("PYTHONHOME", "PYTHONPATH", "VIRTUAL_ENV", "__PYVENV_LAUNCHER__")

class EnvironmentManager:
    """
    Manages the merging and resolution of environment variables from multiple sources.
    """
    def __init__(self, base_dir: str = "."):
        """
        Initializes the environment manager.

        :param base_dir: The base directory for resolving relative paths to .env files.
        """
        self.base_dir = base_dir
        self.parser = EnvParser()

    def get_merged_environment(self,
                               explicit_env: Dict[str, str],
                               env_files: Optional[List[str]] = None,
                               base_env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Merges environment variables from the base environment (the current
        process by default), the given .env files and explicit definitions.

        :param explicit_env: A dictionary of explicitly defined environment variables.
        :param env_files: A list of paths to .env files.
        :param base_env: Environment to start from instead of os.environ.
        :return: A dictionary containing the merged environment variables.
        :raises FileNotFoundError: If an env file does not exist.
        """
        merged_env = dict(os.environ if base_env is None else base_env)

        # Later files override earlier ones
        for env_file in env_files or []:
            file_path = os.path.join(self.base_dir, env_file)
            merged_env.update(self.parser.parse(file_path))

        merged_env.update(explicit_env)
        return merged_env

    def for_image(self,
                  venv_path: str,
                  image_env: Dict[str, str],
                  overrides: Optional[Dict[str, str]] = None,
                  env_files: Optional[List[str]] = None) -> Dict[str, str]:
        """
        Builds the environment of a process running inside an image: the
        host environment without interpreter overrides, the image's runtime
        first on PATH, then image ENV values, env files and overrides.

        :param venv_path: The image's virtual environment.
        :param image_env: ENV values recorded in the image.
        :param overrides: Values given at run time.
        :param env_files: .env files given at run time.
        """
        host = {k: v for k, v in os.environ.items() if k not in HOST_ONLY}
        bin_dir = os.path.join(venv_path, "Scripts" if os.name == "nt" else "bin")
        host["PATH"] = bin_dir + os.pathsep + host.get("PATH", os.defpath)
        host["VIRTUAL_ENV"] = venv_path
        host.setdefault("LANG", "C.UTF-8")

        env = self.get_merged_environment(image_env, base_env=host)
        if "PATH" in image_env and bin_dir not in image_env["PATH"].split(os.pathsep):
            env["PATH"] = bin_dir + os.pathsep + image_env["PATH"]
        return self.get_merged_environment(overrides or {}, env_files, base_env=env)
