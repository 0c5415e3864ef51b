"""Temporary local staging of an explicit file list."""

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Union

from ..exceptions import StagingError

logger = logging.getLogger(__name__)

STAGING_PREFIX = "movepress_stage_"


class LocalStagingService:
    """Copies a list of files into a fresh temporary directory.

    Used to push exactly the files version control tracks: the list is
    staged and the staging directory becomes the transfer source.
    """

    def __init__(self, temp_root: Optional[Union[str, Path]] = None):
        """Initialize the service.

        Args:
            temp_root: Parent for staging directories (system temp by default)
        """
        self.temp_root = Path(temp_root) if temp_root is not None else None

    def stage(
        self,
        source_root: Union[str, Path],
        file_list: Iterable[str],
        preserve_structure: bool = True,
    ) -> Path:
        """Copy the listed files into a new staging directory.

        Args:
            source_root: Directory the listed paths are relative to
            file_list: Relative paths of the files to stage
            preserve_structure: Keep relative directories (otherwise files
                are placed directly in the staging root)

        Returns:
            Path of the staging directory

        Raises:
            StagingError: If a listed file is missing or cannot be copied;
                the staging directory is removed before raising
        """
        root = Path(source_root)
        try:
            staging_path = Path(
                tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.temp_root)
            )
        except OSError as e:
            raise StagingError(f"Cannot create staging directory: {e}") from e

        logger.debug(f"Staging files from {root} into {staging_path}")
        staged = 0
        try:
            for relative in file_list:
                self._copy(root, staging_path, relative, preserve_structure)
                staged += 1
        except BaseException:
            self.cleanup(staging_path)
            raise

        logger.debug(f"Staged {staged} files")
        return staging_path

    def cleanup(self, staging_path: Optional[Union[str, Path]]) -> None:
        """Remove a staging directory; missing paths are ignored."""
        if staging_path is None:
            return
        path = Path(staging_path)
        if not path.exists():
            return

        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Could not remove staging directory {path}: {e}")
            return
        logger.debug(f"Removed staging directory {path}")

    @contextmanager
    def staged(
        self,
        source_root: Union[str, Path],
        file_list: Iterable[str],
        preserve_structure: bool = True,
    ) -> Iterator[Path]:
        """Stage files for the duration of a ``with`` block."""
        staging_path = self.stage(source_root, file_list, preserve_structure)
        try:
            yield staging_path
        finally:
            self.cleanup(staging_path)

    @staticmethod
    def _copy(
        root: Path, staging_path: Path, relative: str, preserve_structure: bool
    ) -> None:
        relative_path = PurePosixPath(relative.replace("\\", "/"))
        if relative_path.is_absolute() or ".." in relative_path.parts:
            raise StagingError(
                f"Refusing to stage path outside the source root: {relative}",
                path=relative,
            )

        source = root.joinpath(*relative_path.parts)
        if not source.exists() and not source.is_symlink():
            raise StagingError(f"Listed file not found: {relative}", path=relative)

        if preserve_structure:
            destination = staging_path.joinpath(*relative_path.parts)
        else:
            destination = staging_path / relative_path.name
            if destination.exists() or destination.is_symlink():
                raise StagingError(
                    f"Duplicate file name while flattening: {relative_path.name}",
                    path=relative,
                )

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir() and not source.is_symlink():
                shutil.copytree(source, destination, symlinks=True)
            else:
                shutil.copy2(source, destination, follow_symlinks=False)
        except OSError as e:
            raise StagingError(f"Cannot stage {relative}: {e}", path=relative) from e
