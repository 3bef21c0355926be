from __future__ import annotations
"""Error taxonomy raised by adapters and build stages.

Every error that should end a build derives from `BuildError` so the CLI can
report it as a single line. Archive parsing errors never leave the archive
reader; they are converted into an `EntryNotFound` result there.
"""


class BuildError(RuntimeError):
    """Base class for failures that abort a cloud build."""


class MissingOutput(BuildError):
    pass


class MissingWorkflows(BuildError):
    pass


class VcsUnavailable(BuildError):
    pass


class MissingConfig(BuildError):
    pass


class MissingToken(BuildError):
    pass


class ConfigUnreadable(BuildError):
    pass


class VcsCommandFailed(BuildError):
    """A git invocation exited non-zero; `output` holds captured stderr/stdout."""

    def __init__(self, message: str, *, return_code: int | None = None, output: str = "") -> None:
        super().__init__(message)
        self.return_code = return_code
        self.output = output


class FileSystemError(BuildError):
    """A local file operation failed; `path` is the file or directory involved."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ApiRequestError(BuildError):
    """Remote API call failed.

    Attributes:
        status: HTTP status code, or `None` for transport failures/timeouts.
        message: Server-provided message when available.
    """

    default_message = "Unknown error"
    summary = "API request failed"

    def __init__(self, status: int | None = None, message: str | None = None) -> None:
        self.status = status
        self.message = message or self.default_message
        if status is None:
            text = f"{self.summary}: {self.message}"
        else:
            text = f"{self.summary} (HTTP {status}): {self.message}"
        super().__init__(text)


class AuthenticationFailed(ApiRequestError):
    default_message = "Invalid token"
    summary = "Authentication failed"


class RepoCreationFailed(ApiRequestError):
    summary = "Failed to create repo"


class RunListFailed(ApiRequestError):
    summary = "Failed to get workflow runs"


class RunFetchFailed(ApiRequestError):
    summary = "Failed to get workflow run"


class ArtifactListFailed(ApiRequestError):
    summary = "Failed to get artifacts"


class ExpectedRedirect(ApiRequestError):
    default_message = "expected redirect"
    summary = "Failed to download artifact"


class ArtifactDownloadFailed(ApiRequestError):
    summary = "Failed to download artifact"


class NoRunsDetected(BuildError):
    pass


class BuildTimeout(BuildError):
    pass


class ArchiveError(ValueError):
    """Base class for ZIP parsing failures inside the archive reader."""


class ArchiveTooSmall(ArchiveError):
    pass


class NoCentralDirectory(ArchiveError):
    pass


class EmptyArchive(ArchiveError):
    pass


class CorruptCentralDirectory(ArchiveError):
    pass
