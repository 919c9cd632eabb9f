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
Utilities for resolving the full execution command for an image.
"""
from typing import List, Optional, Union

from ..MODELS.image_spec import SHELL, merge_command

Command = Union[str, List[str]]

class EntrypointExecutor:
    """
    Handles the merging of ENTRYPOINT and CMD instructions according to Docker rules.
    """
    def get_full_command(self, entrypoint: Command, cmd: Command,
                         override: Optional[List[str]] = None) -> List[str]:
        """
        Combines entrypoint and cmd into a single command list.

        :param entrypoint: The ENTRYPOINT, as a list (exec form) or string (shell form).
        :param cmd: The CMD, as a list (exec form) or string (shell form).
        :param override: Arguments given at run time; they replace CMD.
        :return: The full command list.
        """
        entrypoint = self.to_exec_form(entrypoint)
        cmd = self.to_exec_form(cmd)
        if override:
            cmd = list(override)
        return merge_command(entrypoint, cmd)

    @staticmethod
    def to_exec_form(command: Optional[Command]) -> List[str]:
        if not command:
            return []
        if isinstance(command, str):
            return SHELL + [command]
        return list(command)
