"""Source scanner that walks a project and yields readable source files."""

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, NamedTuple, Optional

from .config import ScanConfig

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """Raised when the project root cannot be scanned at all."""
    pass


class SourceFile(NamedTuple):
    """A source file's path relative to the project root and its text."""

    relative_path: str
    content: str


class SourceScanner:
    """Walks a project directory and yields source files.

    Excluded directories are pruned without being descended into and
    symbolic links are never followed. Iterating the scanner starts a
    fresh walk, so the sequence can be consumed more than once.
    """

    def __init__(
        self,
        root: Path,
        exclude_dirs: Optional[Iterable[str]] = None,
        extensions: Optional[Iterable[str]] = None,
        max_file_size: Optional[int] = None,
    ):
        defaults = ScanConfig()
        self.root = Path(root)
        self.exclude_dirs = set(exclude_dirs if exclude_dirs is not None else defaults.exclude_dirs)
        self.extensions = {ext.lower() for ext in (extensions if extensions is not None else defaults.extensions)}
        self.max_file_size = max_file_size if max_file_size is not None else defaults.max_file_size

    @classmethod
    def from_config(cls, root: Path, config: ScanConfig) -> "SourceScanner":
        return cls(root, config.exclude_dirs, config.extensions, config.max_file_size)

    def __iter__(self) -> Iterator[SourceFile]:
        return self.scan()

    def check_root(self) -> None:
        """Raise ScanError if the root is not a usable directory."""
        if not self.root.exists():
            raise ScanError(f"Project directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise ScanError(f"Path is not a directory: {self.root}")

    def is_source_file(self, name: str) -> bool:
        """Check whether a filename has a recognized source extension."""
        lower = name.lower()
        if lower.endswith(".d.ts"):
            return False
        return os.path.splitext(lower)[1] in self.extensions

    def iter_paths(self) -> Iterator[Path]:
        """Yield absolute paths of candidate source files in sorted order."""
        self.check_root()

        def on_error(error: OSError) -> None:
            logger.warning(f"Could not read directory {error.filename}: {error.strerror}")

        for dirpath, dirnames, filenames in os.walk(self.root, onerror=on_error, followlinks=False):
            current = Path(dirpath)

            # Prune excluded and symlinked directories in place
            dirnames[:] = sorted(
                d for d in dirnames
                if d not in self.exclude_dirs and not (current / d).is_symlink()
            )

            for file_name in sorted(filenames):
                if not self.is_source_file(file_name):
                    continue
                file_path = current / file_name
                if file_path.is_symlink():
                    logger.debug(f"Skipping symbolic link {file_path}")
                    continue
                yield file_path

    def scan(self) -> Iterator[SourceFile]:
        """Yield every readable source file under the root."""
        for file_path in self.iter_paths():
            content = self.read_file_safely(file_path)
            if content is None:
                continue
            rel_path = file_path.relative_to(self.root).as_posix()
            yield SourceFile(rel_path, content)

    def read_file_safely(self, file_path: Path) -> Optional[str]:
        """Read a UTF-8 text file, returning None when it must be skipped."""
        try:
            size = file_path.stat().st_size
            if size > self.max_file_size:
                logger.warning(f"Skipping {file_path}: {size} bytes exceeds {self.max_file_size}")
                return None
            data = file_path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read {file_path}: {e}")
            return None

        if b"\x00" in data:
            logger.warning(f"Skipping binary file {file_path}")
            return None

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"Skipping non UTF-8 file {file_path}")
            return None

    def list_files(self) -> List[str]:
        """Relative paths of all candidate source files."""
        return [p.relative_to(self.root).as_posix() for p in self.iter_paths()]
