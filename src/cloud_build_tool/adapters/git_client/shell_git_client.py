from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable, Sequence

from cloud_build_tool.domain.errors import VcsCommandFailed, VcsUnavailable
from cloud_build_tool.domain.ports import GitClientPort
from cloud_build_tool.logging_utils import mask_credentials


class ShellGitClientAdapter(GitClientPort):
    def __init__(
        self,
        *,
        git_executable: str = "git",
        timeout_seconds: float = 300.0,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        self._git_executable = git_executable
        self._timeout_seconds = timeout_seconds
        self._runner = runner
        self._logger = logging.getLogger(__name__)

    def check_available(self) -> str:
        try:
            result = self._runner(
                [self._git_executable, "--version"],
                check=False,
                text=True,
                capture_output=True,
                timeout=self._timeout_seconds,
            )
        except (OSError, subprocess.TimeoutExpired) as error:
            raise VcsUnavailable(f"{self._git_executable} is not installed or not in PATH.") from error

        if result.returncode != 0:
            raise VcsUnavailable(f"{self._git_executable} is not installed or not in PATH.")
        return (result.stdout or "").strip()

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
        self._logger.info(
            "publishing repository",
            extra={
                "event": "git.publish.start",
                "source_path": str(source_path),
                "remote_url": mask_credentials(remote_url),
                "branch": branch,
            },
        )
        self._run_git(["init"], cwd=source_path)
        self._run_git(["checkout", "-b", branch], cwd=source_path)
        self._run_git(["config", "user.email", author_email], cwd=source_path)
        self._run_git(["config", "user.name", author_name], cwd=source_path)
        self._run_git(["add", "-A"], cwd=source_path)
        self._run_git(["commit", "-m", message], cwd=source_path)
        self._run_git(["remote", "add", "origin", remote_url], cwd=source_path)
        self._run_git(["push", "--force", "origin", branch], cwd=source_path)
        self._logger.info(
            "publish completed",
            extra={"event": "git.publish.success", "source_path": str(source_path), "branch": branch},
        )

    def _run_git(self, args: Sequence[str], cwd: Path) -> subprocess.CompletedProcess[str]:
        command = [self._git_executable, *args]
        display = mask_credentials(" ".join(command))
        try:
            return self._runner(
                command,
                cwd=str(cwd),
                check=True,
                text=True,
                capture_output=True,
                timeout=self._timeout_seconds,
            )
        except FileNotFoundError as error:
            raise VcsUnavailable(
                f"Git executable '{self._git_executable}' was not found in PATH"
            ) from error
        except subprocess.TimeoutExpired as error:
            raise VcsCommandFailed(
                f"Git command timed out after {self._timeout_seconds}s: {display}"
            ) from error
        except subprocess.CalledProcessError as error:
            stderr = (error.stderr or "").strip()
            stdout = (error.stdout or "").strip()
            details = mask_credentials(stderr or stdout or "No command output")
            self._logger.error(
                "git command failed",
                extra={
                    "event": "git.command.error",
                    "command": display,
                    "cwd": str(cwd),
                    "return_code": error.returncode,
                    "details": details,
                },
            )
            raise VcsCommandFailed(
                f"Git command failed ({error.returncode}): {display}\n{details}",
                return_code=error.returncode,
                output=details,
            ) from error
