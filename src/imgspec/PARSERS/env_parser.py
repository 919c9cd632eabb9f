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
Parsers for env files passed to `imgspec run --env-file`.
"""
import os
import re
from typing import Dict, Optional

KEY_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_.-]*$')

class EnvParser:
    """
    Parser for env files: KEY=VALUE lines, quotes, comments and bare KEY
    lines that take their value from the host environment.
    """
    @staticmethod
    def parse(env_path: str, host_env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Parses an env file from a path.

        Args:
            env_path (str): Path to the env file.
            host_env (Optional[Dict[str, str]]): Source for bare KEY lines,
                os.environ by default.

        Returns:
            Dict[str, str]: Dictionary of environment variables.
        """
        with open(env_path, 'r') as f:
            content = f.read()
        return EnvParser.parse_from_string(content, host_env)

    @staticmethod
    def parse_from_string(content: str, host_env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Parses environment variables from a string.
        Handles quotes, comments and escaped quotes. Lines with an invalid
        key are skipped.
        """
        if host_env is None:
            host_env = dict(os.environ)

        env = {}
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if line.startswith('export '):
                line = line[len('export '):].strip()

            if '=' not in line:
                if KEY_PATTERN.match(line) and line in host_env:
                    env[line] = host_env[line]
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()
            if not KEY_PATTERN.match(key):
                continue

            if value[:1] in ('"', "'"):
                quote = value[0]
                end = 1
                while True:
                    end = value.find(quote, end)
                    if end == -1 or value[end - 1] != '\\':
                        break
                    end += 1
                if end != -1:
                    value = value[1:end].replace(f'\\{quote}', quote)
            elif '#' in value:
                # Unquoted values end at an inline comment
                value = value.split(' #', 1)[0].strip()

            env[key] = value

        return env
