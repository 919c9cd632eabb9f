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
Running containers: one process started from a built image, inside the
image's working directory, with the image's runtime and environment.
"""
import os
import shutil
import subprocess
from typing import Dict, List, Optional

from ..MANAGERS.environment_manager import EnvironmentManager
from ..MODELS.built_image import BuiltImage
from ..MODELS.image_spec import find_entrypoint_script
from .entrypoint_executor import EntrypointExecutor
from .process_runner import ProcessRunner

# Exit codes for failures that happen before or around the process itself
EXIT_NO_COMMAND = 125
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124
EXIT_MISSING_SCRIPT = 2


class ContainerRunner:
    """
    Starts containers from built images and reports their exit codes.
    """
    def __init__(self, stop_timeout: int = 10):
        """
        :param stop_timeout: Seconds a stopping container gets before it is killed.
        """
        self.stop_timeout = stop_timeout
        self.env_manager = EnvironmentManager()
        self.executor = EntrypointExecutor()

    def resolve_command(self, image: BuiltImage, command: Optional[List[str]],
                        env: Dict[str, str]) -> List[str]:
        """
        Full command for a container, with the executable resolved against
        the image: paths inside the image map onto its root filesystem and
        bare names are looked up on the container PATH.
        """
        spec = image.spec
        full = self.executor.get_full_command(spec.entrypoint, spec.cmd, override=command)
        if not full:
            return full

        executable = full[0]
        if executable.startswith("/"):
            in_image = image.host_path(executable)
            if os.path.exists(in_image):
                full[0] = in_image
        elif "/" not in executable:
            found = shutil.which(executable, path=env.get("PATH"))
            if found:
                full[0] = found
        else:
            full[0] = os.path.join(image.working_dir, executable)
        return full

    def run(self,
            image: BuiltImage,
            command: Optional[List[str]] = None,
            env: Optional[Dict[str, str]] = None,
            env_files: Optional[List[str]] = None,
            timeout: Optional[float] = None,
            log_file: Optional[str] = None) -> int:
        """
        Runs a container to completion.

        :param image: The image to start.
        :param command: Replaces the image CMD when given.
        :param env: Environment overrides.
        :param env_files: Env files applied before the overrides.
        :param timeout: Seconds before the container is stopped.
        :param log_file: Redirect container output to this file.
        :return: The container exit code.
        """
        name = image.tags[0] if image.tags else image.short_id
        process_env = self.env_manager.for_image(image.venv_path, image.spec.env, env, env_files)
        full = self.resolve_command(image, command, process_env)

        if not full:
            print(f"[{name}] No command specified, nothing to run.")
            return EXIT_NO_COMMAND

        workdir = image.working_dir
        if not os.path.isdir(workdir):
            os.makedirs(workdir, exist_ok=True)

        script = find_entrypoint_script(full)
        if script is not None:
            host_script = image.host_path(script) if script.startswith("/") else os.path.join(workdir, script)
            if not os.path.isfile(host_script):
                print(f"[{name}] can't open file '{script}': No such file or directory "
                      f"in {image.spec.working_dir}")
                return EXIT_MISSING_SCRIPT

        runner = ProcessRunner(name, log_file=log_file)
        try:
            runner.start(full, env=process_env, working_dir=workdir)
        except FileNotFoundError:
            print(f"[{name}] {full[0]}: executable file not found in $PATH")
            return EXIT_NOT_FOUND
        except PermissionError:
            print(f"[{name}] {full[0]}: permission denied")
            return EXIT_NOT_EXECUTABLE

        try:
            code = runner.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            print(f"[{name}] Timed out after {timeout}s")
            runner.stop(timeout=self.stop_timeout)
            return EXIT_TIMEOUT
        except KeyboardInterrupt:
            runner.stop(timeout=self.stop_timeout)
            code = runner.get_exit_code()
            if code is None:
                code = 130

        if code < 0:
            code = 128 - code
        print(f"[{name}] Exited with code {code}")
        return code
