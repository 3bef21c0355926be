from __future__ import annotations

import logging
import shutil
from pathlib import Path

from cloud_build_tool.domain.errors import FileSystemError
from cloud_build_tool.domain.ports import FileSystemPort


class LocalFileSystemAdapter(FileSystemPort):
    """`FileSystemPort` over the local disk; every `OSError` becomes a `FileSystemError`."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def ensure_directory(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise self._wrap("create directory", path, error) from error

    def path_exists(self, path: Path) -> bool:
        return path.exists()

    def list_directory(self, path: Path) -> list[Path]:
        try:
            return sorted(path.iterdir(), key=lambda item: item.name)
        except OSError as error:
            raise self._wrap("list directory", path, error) from error

    def copy_tree(self, source: Path, destination: Path) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir():
                shutil.copytree(source, destination, dirs_exist_ok=True)
            else:
                shutil.copy2(source, destination)
        except OSError as error:
            raise self._wrap(f"copy {source} to", destination, error) from error

    def remove_tree(self, path: Path) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
        except OSError as error:
            raise self._wrap("remove", path, error) from error

    def write_bytes(self, path: Path, data: bytes) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as error:
            raise self._wrap("write", path, error) from error

    def _wrap(self, operation: str, path: Path, error: OSError) -> FileSystemError:
        self._logger.error(
            "filesystem operation failed",
            extra={"event": "filesystem.error", "operation": operation, "path": str(path), "error": str(error)},
        )
        return FileSystemError(f"Cannot {operation} {path}: {error.strerror or error}", path=str(path))
