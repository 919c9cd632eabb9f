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
Builders that turn an ImageBuildSpec and a build context into a native image:
a root filesystem holding the copied sources and a virtual environment
standing in for the base image's Python runtime.
"""
import os
import shutil
import subprocess
import sys
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..errors import BuildError
from ..MANAGERS.environment_manager import EnvironmentManager
from ..MODELS.built_image import BuiltImage
from ..MODELS.image_spec import (
    ArgStep, CopyStep, EnvStep, ImageBuildSpec, RunStep, WorkdirStep, resolve_workdir,
)
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.image_store import ImageStore, normalize_tag
from ..UTILS.hashing import digest_parts
from .build_context import BuildContext


class ImageBuilder:
    """
    Executes the steps of an image specification, strictly in order, against
    a build context.
    """
    def __init__(self, store: ImageStore, python: Optional[str] = None, with_pip: bool = True):
        """
        Initializes the ImageBuilder.

        :param store: Where built images are kept.
        :param python: Interpreter the image runtime is created from.
        :param with_pip: Whether the runtime gets pip installed.
        """
        self.store = store
        self.python = python or sys.executable
        self.with_pip = with_pip
        self.env_manager = EnvironmentManager()
        self._python_version: Optional[str] = None

    @property
    def python_version(self) -> str:
        """Version of the interpreter images are built from, e.g. '3.11.4'."""
        if self._python_version is None:
            try:
                out = subprocess.run(
                    [self.python, "-c", "import platform; print(platform.python_version())"],
                    capture_output=True, text=True, check=True,
                )
            except (OSError, subprocess.CalledProcessError) as e:
                raise BuildError(f"Python interpreter {self.python} is not usable: {e}")
            self._python_version = out.stdout.strip()
        return self._python_version

    def image_id(self, spec: ImageBuildSpec, context_digest: str) -> str:
        """
        Identity of the image a build would produce. The image name does not
        take part, so the same sources built under two names share an id.
        """
        return digest_parts([
            spec.canonical_json(exclude={"name"}),
            context_digest,
            ImageReference.parse(spec.base_image).full_name,
            self.python_version,
            str(self.with_pip),
        ])

    def build(self, spec: ImageBuildSpec, context_dir: str = ".", no_cache: bool = False,
              tags: Optional[List[str]] = None) -> BuiltImage:
        """
        Builds an image.

        :param spec: The image specification.
        :param context_dir: The build context directory.
        :param no_cache: Rebuild even if an identical image exists.
        :param tags: Extra tags; the image name is always tagged.
        :return: The built (or reused) image.
        :raises BuildError: If a step fails. Nothing of the image is kept.
        """
        context = BuildContext(context_dir)
        try:
            base = ImageReference.parse(spec.base_image)
        except ValueError as e:
            raise BuildError(str(e), step=f"FROM {spec.base_image}")

        tags = [normalize_tag(t) for t in [spec.name] + list(tags or [])]
        self._check_base(base)

        context_digest = context.digest()
        image_id = self.image_id(spec, context_digest)
        if self.store.exists(image_id):
            if not no_cache:
                print(f"[build] Using cached image {image_id.split(':', 1)[-1][:12]}")
                image = self.store.get(image_id)
                image.tags = tags
                return self.store.save(image)

        path = self.store.image_dir(image_id)
        previous = None
        if no_cache and path.exists():
            # Kept aside until the rebuild succeeds; the venv only works at its original path
            previous = self.store.root / f".previous-{path.name}"
            shutil.rmtree(previous, ignore_errors=True)
            os.replace(path, previous)

        image = BuiltImage(
            id=image_id,
            tags=tags,
            spec=spec,
            context_digest=context_digest,
            created=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            path=str(path),
            python=self.python_version,
        )

        try:
            total = len(spec.steps) + 1
            print(f"[build] Step 1/{total} : FROM {base.short_name}")
            self._create_runtime(image)
            self._run_steps(image, context, total)
            self._check_entrypoint(image)
            image = self.store.save(image)
        except BaseException:
            print(f"[build] Build of {spec.name} failed, removing {path}")
            shutil.rmtree(path, ignore_errors=True)
            if previous is not None:
                os.replace(previous, path)
                print(f"[build] Kept the previous image {image_id.split(':', 1)[-1][:12]}")
            raise

        if previous is not None:
            shutil.rmtree(previous, ignore_errors=True)

        print(f"[build] Successfully built {image.short_id}")
        for tag in image.tags:
            print(f"[build] Successfully tagged {tag}")
        return image

    def _check_base(self, base: ImageReference):
        wanted = base.python_version
        if wanted is None:
            print(f"Warning: {base.short_name} is not a python image; using the host interpreter {self.python_version}")
            return
        have = self.python_version
        if have != wanted and not have.startswith(wanted + "."):
            print(f"Warning: base image {base.short_name} expects Python {wanted}, "
                  f"building with Python {have}")

    def _create_runtime(self, image: BuiltImage):
        """
        Creates the image root filesystem and its virtual environment.
        """
        os.makedirs(image.rootfs, exist_ok=True)
        cmd = [self.python, "-m", "venv", image.venv_path]
        if not self.with_pip:
            cmd.append("--without-pip")
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise BuildError(
                f"could not create the image runtime: {result.stderr.strip()}",
                step=f"FROM {image.spec.base_image}",
                exit_code=result.returncode,
            )

    def _run_steps(self, image: BuiltImage, context: BuildContext, total: int):
        workdir = "/"
        env: Dict[str, str] = {}
        args: Dict[str, str] = {}

        for number, step in enumerate(image.spec.steps, start=2):
            if isinstance(step, WorkdirStep):
                workdir = resolve_workdir(workdir, step.path)
                print(f"[build] Step {number}/{total} : WORKDIR {workdir}")
                os.makedirs(image.host_path(workdir), exist_ok=True)
            elif isinstance(step, EnvStep):
                print(f"[build] Step {number}/{total} : ENV "
                      + " ".join(f"{k}={v}" for k, v in step.values.items()))
                env.update(step.values)
            elif isinstance(step, ArgStep):
                print(f"[build] Step {number}/{total} : ARG "
                      + " ".join(f"{k}={v}" for k, v in step.values.items()))
                args.update(step.values)
            elif isinstance(step, CopyStep):
                print(f"[build] Step {number}/{total} : COPY {' '.join(step.sources)} {step.destination}")
                copied = self._copy(image, context, step, workdir)
                print(f"[build]  ---> copied {copied} file(s)")
            elif isinstance(step, RunStep):
                print(f"[build] Step {number}/{total} : {step.describe()}")
                # ENV wins over an ARG of the same name
                self._run(image, step, workdir, {**args, **env})

    def _copy(self, image: BuiltImage, context: BuildContext, step: CopyStep, workdir: str) -> int:
        """
        Copies the step's sources into the image.

        A single file copied to a destination without a trailing slash is
        written to that path; everything else lands inside it.
        """
        dest_image_path = resolve_workdir(workdir, step.destination)
        dest = image.host_path(dest_image_path)
        into_dir = (
            step.destination.endswith("/")
            or step.destination in (".", "./")
            or len(step.sources) > 1
            or not context.is_single_file(step.sources[0])
            or os.path.isdir(dest)
        )

        copied = 0
        for source in step.sources:
            for rel, target in context.resolve(source):
                target_path = os.path.join(dest, *target.split("/")) if into_dir else dest
                os.makedirs(os.path.dirname(target_path), exist_ok=True)
                shutil.copy2(context.host_path(rel), target_path)
                copied += 1
        return copied

    def _run(self, image: BuiltImage, step: RunStep, workdir: str, env: Dict[str, str]):
        cwd = image.host_path(workdir)
        os.makedirs(cwd, exist_ok=True)
        process_env = self.env_manager.for_image(image.venv_path, env)
        try:
            result = subprocess.run(step.argv(), cwd=cwd, env=process_env)
        except FileNotFoundError as e:
            raise BuildError(f"executable not found: {e.filename}", step=step.describe(), exit_code=127)
        except PermissionError as e:
            raise BuildError(f"permission denied: {e.filename}", step=step.describe(), exit_code=126)

        if result.returncode != 0:
            raise BuildError(
                f"The command '{' '.join(step.command)}' returned a non-zero code: {result.returncode}",
                step=step.describe(),
                exit_code=result.returncode,
            )

    def _check_entrypoint(self, image: BuiltImage):
        script = image.spec.entrypoint_script()
        if script is None:
            return
        host_script = os.path.join(image.working_dir, script) if not script.startswith("/") \
            else image.host_path(script)
        if not os.path.isfile(host_script):
            print(f"Warning: entry point {script} does not exist in {image.spec.working_dir}; "
                  f"containers started from this image will fail")
