"""
Output writer for generated key material, certificates and configs.

Implements:
- ensure_dir()   -> mkdir -p, no error if it already exists
- write()        -> write bytes and apply the permission class
- staged()       -> write a whole output set into a staging directory and
                    move it into place only if every file was written

Private material is chmod'ed to 0600 before any byte is written to it.
Concurrent runs against the same output directory are not coordinated.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from sigil.common.errors import OutputError
from sigil.common.models import ContentKind, OutputArtifact, PermissionClass

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".sigil-staging-"

PathLike = Union[str, os.PathLike]


# --------------------------------------------------------
# Single files
# --------------------------------------------------------

def ensure_dir(directory: PathLike) -> Path:
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputError(f"could not create directory {directory}: {exc}") from exc
    return directory


def write(
    path: PathLike,
    data: bytes,
    permission: PermissionClass,
    kind: ContentKind = ContentKind.KEY,
) -> OutputArtifact:
    """
    Write `data` to `path` with the given permission class.
    Writing the same bytes twice leaves the same content and mode.
    """
    path = Path(path)
    ensure_dir(path.parent)
    mode = int(permission)

    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            # the file may pre-exist with a wider mode
            os.chmod(path, mode)
            f.write(data)
    except OSError as exc:
        raise OutputError(f"could not write {path}: {exc}") from exc

    logger.debug("wrote %s (%d bytes, mode %o)", path, len(data), mode)
    return OutputArtifact(path=path, permission=permission, kind=kind)


# --------------------------------------------------------
# Output sets
# --------------------------------------------------------

class Stage:
    """Collects files in a staging directory until commit()."""

    def __init__(self, directory: Path, staging_dir: Path):
        self.directory = directory
        self.staging_dir = staging_dir
        self.artifacts: list[OutputArtifact] = []
        self._pending: list[OutputArtifact] = []

    def write(
        self,
        name: str,
        data: bytes,
        permission: PermissionClass,
        kind: ContentKind = ContentKind.KEY,
    ) -> OutputArtifact:
        artifact = write(self.staging_dir / name, data, permission, kind)
        self._pending.append(artifact)
        return artifact

    def commit(self) -> list[OutputArtifact]:
        for staged_artifact in self._pending:
            final = self.directory / staged_artifact.path.name
            try:
                os.replace(staged_artifact.path, final)
            except OSError as exc:
                raise OutputError(f"could not move {final.name} into {self.directory}: {exc}") from exc
            self.artifacts.append(
                OutputArtifact(path=final, permission=staged_artifact.permission, kind=staged_artifact.kind)
            )
        self._pending = []
        logger.info("committed %d files to %s", len(self.artifacts), self.directory)
        return self.artifacts


@contextmanager
def staged(directory: PathLike) -> Iterator[Stage]:
    """
    Usage:
        with staged(out_dir) as stage:
            stage.write("ca.crt", pem, PermissionClass.PUBLIC, ContentKind.CERTIFICATE)
        stage.artifacts  # final paths

    If the block raises, nothing reaches `directory` and the staging
    directory is removed.
    """
    directory = ensure_dir(directory)
    try:
        staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=directory))
    except OSError as exc:
        raise OutputError(f"could not create staging directory in {directory}: {exc}") from exc

    stage = Stage(directory, staging_dir)
    try:
        yield stage
        stage.commit()
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)
