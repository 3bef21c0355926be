from __future__ import annotations
"""Hexagonal architecture port interfaces.

Build stages depend only on these abstractions. Adapters provide concrete
implementations for the CI provider API, shell git, filesystem, config file and
console output.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from .entities import Artifact, Identity, ProjectConfig, RemoteRun, RepoRecord


class WorkflowApiPort(ABC):
    """Repository hosting + CI provider (GitHub Actions adapter).

    Implementations never retry; callers own retry policy.
    """

    @abstractmethod
    def get_authenticated_user(self) -> Identity:
        """Resolve the account that owns the configured token."""
        raise NotImplementedError

    @abstractmethod
    def repo_exists(self, owner: str, name: str) -> bool:
        """Return whether `owner/name` exists. Must not raise on 404."""
        raise NotImplementedError

    @abstractmethod
    def create_repo(self, name: str, *, private: bool) -> RepoRecord:
        """Create a repository under the authenticated account."""
        raise NotImplementedError

    @abstractmethod
    def list_runs(self, owner: str, repo: str) -> list[RemoteRun]:
        """List the most recent push runs on the main branch."""
        raise NotImplementedError

    @abstractmethod
    def get_run(self, owner: str, repo: str, run_id: int) -> RemoteRun:
        """Fetch the current state of one run."""
        raise NotImplementedError

    @abstractmethod
    def list_artifacts(self, owner: str, repo: str, run_id: int) -> list[Artifact]:
        """List artifacts produced by one run."""
        raise NotImplementedError

    @abstractmethod
    def download_artifact(self, owner: str, repo: str, artifact_id: int) -> bytes:
        """Download the artifact ZIP bytes (redirect, then unauthenticated fetch)."""
        raise NotImplementedError


class GitClientPort(ABC):
    """Local git operations used by the push stage."""

    @abstractmethod
    def check_available(self) -> str:
        """Return the git version string or raise `VcsUnavailable`."""
        raise NotImplementedError

    @abstractmethod
    def publish(
        self,
        source_path: Path,
        *,
        remote_url: str,
        branch: str,
        author_name: str,
        author_email: str,
        message: str,
    ) -> None:
        """Initialize a fresh repository in `source_path`, commit all files and force-push."""
        raise NotImplementedError


class FileSystemPort(ABC):
    """Filesystem operations abstracted for testability and portability."""

    @abstractmethod
    def ensure_directory(self, path: Path) -> None:
        """Ensure target directory exists (create recursively if needed)."""
        raise NotImplementedError

    @abstractmethod
    def path_exists(self, path: Path) -> bool:
        """Return whether a path exists."""
        raise NotImplementedError

    @abstractmethod
    def list_directory(self, path: Path) -> list[Path]:
        """Return direct children of a directory, sorted by name."""
        raise NotImplementedError

    @abstractmethod
    def copy_tree(self, source: Path, destination: Path) -> None:
        """Copy a file or directory tree, creating parent directories."""
        raise NotImplementedError

    @abstractmethod
    def remove_tree(self, path: Path) -> None:
        """Remove a directory tree; missing paths are ignored."""
        raise NotImplementedError

    @abstractmethod
    def write_bytes(self, path: Path, data: bytes) -> None:
        """Write binary content to a file."""
        raise NotImplementedError


class ConfigStorePort(ABC):
    """Saved project configuration shared across CLI invocations."""

    @abstractmethod
    def load(self) -> ProjectConfig | None:
        """Return the saved configuration, or `None` when absent."""
        raise NotImplementedError

    @abstractmethod
    def save_token(self, token: str) -> None:
        """Persist the API token (explicit user opt-in only)."""
        raise NotImplementedError


class ProgressReporter(ABC):
    """Human-readable progress stream; not a stable contract."""

    @abstractmethod
    def step(self, number: int, total: int, message: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def info(self, message: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def success(self, message: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def warning(self, message: str) -> None:
        raise NotImplementedError
