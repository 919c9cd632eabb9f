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
Local store of built images.
Each image lives in its own directory named after its id; tags are kept in
an index file.
"""

import json
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ImageNotFoundError, ImgspecError
from ..MODELS.built_image import BuiltImage

MANIFEST = "image.json"


def normalize_tag(name: str) -> str:
    """'myapp' -> 'myapp:latest'; names that carry a tag are unchanged."""
    name = name.strip()
    if ":" not in name.rsplit("/", 1)[-1]:
        return f"{name}:latest"
    return name


class ImageStore:
    """
    Manages the images produced by builds.
    """

    def __init__(self, root: str):
        """
        Initialize the store.

        Args:
            root: Directory holding images/ and index.json.
        """
        self.root = Path(root)
        self.images_dir = self.root / "images"
        self.index_file = self.root / "index.json"
        self.images_dir.mkdir(parents=True, exist_ok=True)
        self._index = self._load_index()

    def _load_index(self) -> Dict[str, Dict[str, str]]:
        """Load the tag index from disk."""
        if self.index_file.exists():
            try:
                with open(self.index_file, 'r') as f:
                    return json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                print(f"Warning: ignoring unreadable image index {self.index_file}: {e}")
        return {"tags": {}}

    def _save_index(self) -> None:
        """Save the tag index to disk."""
        tmp = self.index_file.with_suffix(".tmp")
        with open(tmp, 'w') as f:
            json.dump(self._index, f, indent=2, sort_keys=True)
        os.replace(tmp, self.index_file)

    def image_dir(self, image_id: str) -> Path:
        """Directory an image with the given id is (or will be) stored in."""
        return self.images_dir / image_id.split(":", 1)[-1]

    def exists(self, image_id: str) -> bool:
        return (self.image_dir(image_id) / MANIFEST).exists()

    def save(self, image: BuiltImage) -> BuiltImage:
        """
        Writes the image manifest and points each of its tags at it.

        Returns:
            The stored image, with tags merged from any previous record.
        """
        path = self.image_dir(image.id)
        if path.exists() and (path / MANIFEST).exists():
            previous = self._read(path)
            image.tags = sorted(set(previous.tags) | set(image.tags))

        for tag in list(image.tags):
            self.tag(image.id, tag, _write_manifest=False)

        image.tags = self._tags_for(image.id)
        self._write(image)
        return image

    def tag(self, image_id: str, name: str, _write_manifest: bool = True) -> None:
        """
        Points a tag at an image, removing it from whichever image held it.
        """
        name = normalize_tag(name)
        previous = self._index["tags"].get(name)
        self._index["tags"][name] = image_id
        self._save_index()

        if previous and previous != image_id and self.exists(previous):
            old = self._read(self.image_dir(previous))
            old.tags = self._tags_for(previous)
            self._write(old)
        if _write_manifest and self.exists(image_id):
            image = self._read(self.image_dir(image_id))
            image.tags = self._tags_for(image_id)
            self._write(image)

    def get(self, reference: str) -> BuiltImage:
        """
        Looks an image up by tag, full id or unambiguous id prefix.

        Raises:
            ImageNotFoundError: If nothing matches.
        """
        image_id = self.resolve(reference)
        return self._read(self.image_dir(image_id))

    def resolve(self, reference: str) -> str:
        """Returns the full id of the image a reference names."""
        tagged = self._index["tags"].get(normalize_tag(reference))
        if tagged and self.exists(tagged):
            return tagged

        prefix = reference.split(":", 1)[-1] if reference.startswith("sha256:") else reference
        if prefix and all(c in "0123456789abcdef" for c in prefix):
            matches = [d.name for d in self.images_dir.iterdir()
                       if d.name.startswith(prefix) and (d / MANIFEST).exists()]
            if len(matches) > 1:
                raise ImgspecError(f"Image reference {reference} is ambiguous")
            if matches:
                return f"sha256:{matches[0]}"

        raise ImageNotFoundError(reference)

    def list(self) -> List[BuiltImage]:
        """
        List all stored images, most recent first.
        """
        images = []
        for path in self.images_dir.iterdir():
            if (path / MANIFEST).exists():
                images.append(self._read(path))
        return sorted(images, key=lambda i: i.created, reverse=True)

    def remove(self, reference: str) -> BuiltImage:
        """
        Removes an image and every tag pointing at it.

        Returns:
            The removed image.
        """
        image_id = self.resolve(reference)
        image = self._read(self.image_dir(image_id))

        for tag in self._tags_for(image_id):
            del self._index["tags"][tag]
        self._save_index()

        shutil.rmtree(self.image_dir(image_id), ignore_errors=True)
        return image

    def size(self, image: BuiltImage) -> int:
        """Total size of an image's files in bytes."""
        total = 0
        for item in Path(image.path).rglob("*"):
            if item.is_file() and not item.is_symlink():
                total += item.stat().st_size
        return total

    def _tags_for(self, image_id: str) -> List[str]:
        return sorted(t for t, i in self._index["tags"].items() if i == image_id)

    def _read(self, path: Path) -> BuiltImage:
        with open(path / MANIFEST, 'r') as f:
            return BuiltImage.model_validate_json(f.read())

    def _write(self, image: BuiltImage) -> None:
        path = Path(image.path)
        path.mkdir(parents=True, exist_ok=True)
        with open(path / MANIFEST, 'w') as f:
            f.write(image.model_dump_json(indent=2))


def format_size(size_bytes: float) -> str:
    """Format a size in bytes to human readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} PB"
