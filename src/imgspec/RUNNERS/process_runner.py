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
Execution of system processes with optional log redirection and lifecycle
management.
"""
import os
import subprocess
from typing import Dict, List, Optional

import psutil


class ProcessRunner:
    """
    Manages the execution of a single system process.
    """
    def __init__(self, name: str, log_file: Optional[str] = None):
        """
        Initializes the process runner.

        Args:
            name (str): Identifier for the process, used as the log prefix.
            log_file (Optional[str]): Path to a file where stdout/stderr will
                be redirected. Output is inherited from the caller when None.
        """
        self.name = name
        self.log_file = log_file
        self.process: Optional[subprocess.Popen] = None
        self.log_handle = None

    def start(self,
              command: List[str],
              env: Dict[str, str],
              working_dir: Optional[str] = None):
        """
        Starts the process.

        Args:
            command (List[str]): Command and arguments to execute.
            env (Dict[str, str]): Environment variables for the process.
            working_dir (Optional[str]): Directory to start the process in.

        Raises:
            FileNotFoundError: If the executable does not exist.
            PermissionError: If the executable cannot be run.
        """
        stdout = None
        stderr = None

        if self.log_file:
            log_dir = os.path.dirname(self.log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            self.log_handle = open(self.log_file, 'a')
            stdout = self.log_handle
            stderr = subprocess.STDOUT

        print(f"[{self.name}] Starting command: {' '.join(command)}")

        try:
            self.process = subprocess.Popen(
                command,
                env=env,
                cwd=working_dir,
                stdout=stdout,
                stderr=stderr,
                # Arguments are never handed to a shell (CWE-78)
                shell=False
            )
        except OSError as e:
            print(f"[{self.name}] Failed to start: {e}")
            self._close_log()
            raise

    def wait(self, timeout: Optional[float] = None) -> int:
        """
        Waits for the process to exit.

        Args:
            timeout (Optional[float]): Seconds to wait; forever when None.

        Returns:
            int: The exit code.

        Raises:
            subprocess.TimeoutExpired: If the process is still running after timeout.
        """
        if self.process is None:
            raise RuntimeError(f"[{self.name}] process was never started")
        code = self.process.wait(timeout=timeout)
        self._close_log()
        return code

    def stop(self, timeout: int = 10):
        """
        Stops the process and its children by sending SIGTERM, followed by
        SIGKILL for whatever is still alive after the timeout.

        Args:
            timeout (int): Seconds to wait for termination before killing.
        """
        if self.process and self.process.poll() is None:
            print(f"[{self.name}] Stopping process...")
            try:
                parent = psutil.Process(self.process.pid)
                procs = parent.children(recursive=True) + [parent]
            except psutil.NoSuchProcess:
                procs = []

            for proc in procs:
                try:
                    proc.terminate()
                except psutil.NoSuchProcess:
                    pass

            _, alive = psutil.wait_procs(procs, timeout=timeout)
            if alive:
                print(f"[{self.name}] Process did not terminate, killing...")
                for proc in alive:
                    try:
                        proc.kill()
                    except psutil.NoSuchProcess:
                        pass
                psutil.wait_procs(alive, timeout=timeout)

            # Reap the direct child so its exit code is available
            try:
                self.process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()

        self._close_log()

    def is_running(self) -> bool:
        """
        Checks if the process is currently running.

        Returns:
            bool: True if running, False otherwise.
        """
        return self.process is not None and self.process.poll() is None

    def get_exit_code(self) -> Optional[int]:
        """
        Gets the exit code of the process.

        Returns:
            Optional[int]: Exit code if process finished, None otherwise.
        """
        if self.process:
            return self.process.poll()
        return None

    def _close_log(self):
        if self.log_handle:
            self.log_handle.close()
            self.log_handle = None
