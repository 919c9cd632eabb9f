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
Build contexts: the file tree a build copies from, filtered by .dockerignore.
"""
import os
import posixpath
import re
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import BuildError
from ..UTILS.hashing import digest_file, digest_parts

IGNORE_FILE = ".dockerignore"


def _normalize(path: str) -> str:
    """Normalizes a context-relative path. The context root becomes ''."""
    path = path.replace("\\", "/").strip()
    path = posixpath.normpath("/" + path).lstrip("/")
    return path


def _pattern_to_regex(pattern: str) -> "re.Pattern":
    """
    Translates a .dockerignore pattern. `**` spans directories, `*` and `?`
    stay within one path component.
    """
    out = ""
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out += "(?:.*/)?"
            i += 3
        elif pattern.startswith("**", i):
            out += ".*"
            i += 2
        elif pattern[i] == "*":
            out += "[^/]*"
            i += 1
        elif pattern[i] == "?":
            out += "[^/]"
            i += 1
        else:
            out += re.escape(pattern[i])
            i += 1
    return re.compile(f"^{out}$")


class IgnoreRules:
    """
    Parsed .dockerignore rules. The last matching rule wins; `!` re-includes.
    A rule matching a directory also matches everything beneath it.
    """
    def __init__(self, lines: Optional[List[str]] = None):
        self.rules: List[Tuple["re.Pattern", bool]] = []
        for line in lines or []:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            negate = line.startswith("!")
            if negate:
                line = line[1:].strip()
            pattern = _normalize(line)
            if pattern:
                self.rules.append((_pattern_to_regex(pattern), negate))

    @classmethod
    def load(cls, root: str) -> "IgnoreRules":
        path = os.path.join(root, IGNORE_FILE)
        if not os.path.isfile(path):
            return cls()
        with open(path, "r") as f:
            return cls(f.read().splitlines())

    def is_ignored(self, rel_path: str) -> bool:
        parts = rel_path.split("/")
        candidates = ["/".join(parts[:i]) for i in range(1, len(parts) + 1)]
        ignored = False
        for regex, negate in self.rules:
            if any(regex.match(c) for c in candidates):
                ignored = not negate
        return ignored


class BuildContext:
    """
    The file tree made available to a build, rooted at a directory.
    """
    def __init__(self, root: str):
        """
        :param root: The build context directory.
        :raises BuildError: If the directory does not exist.
        """
        if not os.path.isdir(root):
            raise BuildError(f"Build context {root} is not a directory")
        self.root = os.path.abspath(root)
        self.ignore = IgnoreRules.load(self.root)
        self._files: Optional[List[str]] = None

    def files(self) -> List[str]:
        """
        Relative POSIX paths of every file in the context that is not
        excluded by .dockerignore, sorted.
        """
        if self._files is None:
            files = []
            for base, dirs, filenames in os.walk(self.root):
                for name in filenames:
                    full = os.path.join(base, name)
                    if not os.path.isfile(full):
                        continue
                    rel = Path(full).relative_to(self.root).as_posix()
                    if not self.ignore.is_ignored(rel):
                        files.append(rel)
            self._files = sorted(files)
        return self._files

    def digest(self) -> str:
        """Content digest over every included path and its bytes."""
        parts = []
        for rel in self.files():
            parts.extend([rel, digest_file(Path(self.root) / rel)])
        return digest_parts(parts)

    def resolve(self, source: str) -> List[Tuple[str, str]]:
        """
        Resolves one COPY source to (context path, path relative to the
        destination) pairs. Directories contribute their contents, not the
        directory itself.

        :raises BuildError: If the source escapes the context or matches nothing.
        """
        raw = source.replace("\\", "/")
        normed = posixpath.normpath(raw)
        if normed == ".." or normed.startswith("../") or raw.startswith("/"):
            raise BuildError(f"COPY source {source} is outside the build context")
        norm = _normalize(raw)
        files = self.files()

        if any(c in norm for c in "*?"):
            regex = _pattern_to_regex(norm)
            pairs = []
            for f in files:
                if regex.match(f):
                    pairs.append((f, posixpath.basename(f)))
                    continue
                parts = f.split("/")
                for i in range(1, len(parts)):
                    parent = "/".join(parts[:i])
                    if regex.match(parent):
                        pairs.append((f, "/".join(parts[i:])))
                        break
            if not pairs:
                raise BuildError(f"COPY source {source} matched no files")
            return pairs

        if not norm:
            return [(f, f) for f in files]
        if norm in files:
            return [(norm, posixpath.basename(norm))]
        prefix = norm + "/"
        pairs = [(f, f[len(prefix):]) for f in files if f.startswith(prefix)]
        if not pairs:
            raise BuildError(f"COPY source {source} not found in build context")
        return pairs

    def is_single_file(self, source: str) -> bool:
        norm = _normalize(source)
        return not any(c in norm for c in "*?") and norm in self.files()

    def host_path(self, rel_path: str) -> str:
        return os.path.join(self.root, *rel_path.split("/"))
