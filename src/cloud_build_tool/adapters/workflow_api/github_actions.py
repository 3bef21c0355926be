from __future__ import annotations

import http.client
import json
import logging
from datetime import datetime
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import HTTPRedirectHandler, Request, build_opener, urlopen

from cloud_build_tool.domain.entities import (
    ApiResponse,
    Artifact,
    Body,
    Identity,
    Redirect,
    RemoteRun,
    RepoRecord,
)
from cloud_build_tool.domain.errors import (
    ApiRequestError,
    ArtifactDownloadFailed,
    ArtifactListFailed,
    AuthenticationFailed,
    ExpectedRedirect,
    RepoCreationFailed,
    RunFetchFailed,
    RunListFailed,
)
from cloud_build_tool.domain.ports import WorkflowApiPort


USER_AGENT = "storefront-build"
REDIRECT_STATUSES = {301, 302, 303, 307, 308}


class _CaptureRedirectHandler(HTTPRedirectHandler):
    """Refuse to follow redirects so the caller sees the `Location` header."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # noqa: D401
        return None


_NO_REDIRECT_OPENER = build_opener(_CaptureRedirectHandler)


class GitHubActionsApiAdapter(WorkflowApiPort):
    def __init__(
        self,
        *,
        token: str,
        api_base_url: str = "https://api.github.com",
        main_branch: str = "main",
        runs_page_size: int = 5,
        timeout_seconds: float = 30.0,
        download_timeout_seconds: float = 60.0,
        urlopen_fn: Callable[..., Any] = _NO_REDIRECT_OPENER.open,
        download_urlopen_fn: Callable[..., Any] = urlopen,
    ) -> None:
        if not token:
            raise ValueError("GitHub token must be a non-empty string")
        self._token = token
        self._api_base_url = api_base_url.rstrip("/")
        self._main_branch = main_branch
        self._runs_page_size = runs_page_size
        self._timeout_seconds = timeout_seconds
        self._download_timeout_seconds = download_timeout_seconds
        self._urlopen_fn = urlopen_fn
        self._download_urlopen_fn = download_urlopen_fn
        self._logger = logging.getLogger(__name__)

    def get_authenticated_user(self) -> Identity:
        response = self._request("GET", "/user")
        payload = self._expect_body(response, 200, AuthenticationFailed)
        login = payload.get("login")
        if not isinstance(login, str) or not login.strip():
            raise AuthenticationFailed(response.status, "Response did not include an account login")

        login = login.strip()
        name = payload.get("name")
        email = payload.get("email")
        return Identity(
            login=login,
            name=name.strip() if isinstance(name, str) and name.strip() else login,
            email=email.strip() if isinstance(email, str) and email.strip() else f"{login}@users.noreply.github.com",
        )

    def repo_exists(self, owner: str, name: str) -> bool:
        response = self._request("GET", f"/repos/{quote(owner, safe='')}/{quote(name, safe='')}")
        return isinstance(response, Body) and response.status == 200

    def create_repo(self, name: str, *, private: bool) -> RepoRecord:
        response = self._request(
            "POST",
            "/user/repos",
            body={"name": name, "private": private, "auto_init": False},
        )
        payload = self._expect_body(response, 201, RepoCreationFailed)
        full_name = payload.get("full_name")
        html_url = payload.get("html_url")
        return RepoRecord(
            name=str(payload.get("name") or name),
            full_name=full_name if isinstance(full_name, str) else name,
            private=bool(payload.get("private", private)),
            html_url=html_url if isinstance(html_url, str) else None,
        )

    def list_runs(self, owner: str, repo: str) -> list[RemoteRun]:
        path = (
            f"{self._repo_path(owner, repo)}/actions/runs"
            f"?event=push&branch={quote(self._main_branch, safe='')}&per_page={self._runs_page_size}"
        )
        payload = self._expect_body(self._request("GET", path), 200, RunListFailed)
        items = payload.get("workflow_runs", [])
        if not isinstance(items, list):
            raise RunListFailed(200, "Unexpected payload: 'workflow_runs' must be a list")

        runs: list[RemoteRun] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            run = self._map_run(item)
            if run is not None:
                runs.append(run)
        return runs

    def get_run(self, owner: str, repo: str, run_id: int) -> RemoteRun:
        path = f"{self._repo_path(owner, repo)}/actions/runs/{int(run_id)}"
        payload = self._expect_body(self._request("GET", path), 200, RunFetchFailed)
        run = self._map_run(payload)
        if run is None:
            raise RunFetchFailed(200, f"Unexpected payload for run {run_id}")
        return run

    def list_artifacts(self, owner: str, repo: str, run_id: int) -> list[Artifact]:
        path = f"{self._repo_path(owner, repo)}/actions/runs/{int(run_id)}/artifacts"
        payload = self._expect_body(self._request("GET", path), 200, ArtifactListFailed)
        items = payload.get("artifacts", [])
        if not isinstance(items, list):
            raise ArtifactListFailed(200, "Unexpected payload: 'artifacts' must be a list")

        artifacts: list[Artifact] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            artifact = self._map_artifact(item)
            if artifact is not None:
                artifacts.append(artifact)
        return artifacts

    def download_artifact(self, owner: str, repo: str, artifact_id: int) -> bytes:
        path = f"{self._repo_path(owner, repo)}/actions/artifacts/{int(artifact_id)}/zip"
        response = self._request("GET", path)
        if not isinstance(response, Redirect):
            raise ExpectedRedirect(response.status, _message_from(response.payload))
        return self._download(response.location)

    def _repo_path(self, owner: str, repo: str) -> str:
        return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"

    def _request(self, method: str, path: str, *, body: dict[str, Any] | None = None) -> ApiResponse:
        url = f"{self._api_base_url}{path}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = Request(url, data=data, headers=self._build_headers(json_body=data is not None), method=method)

        try:
            with self._urlopen_fn(request, timeout=self._timeout_seconds) as response:
                status = response.status
                location = response.headers.get("Location") if response.headers else None
                content = response.read()
        except HTTPError as error:
            status = error.code
            location = error.headers.get("Location") if error.headers else None
            try:
                content = b"" if location else error.read()
            except (OSError, http.client.HTTPException):
                # Status alone is enough to classify the failure.
                content = b""
        except (URLError, OSError, http.client.HTTPException) as error:
            reason = getattr(error, "reason", None) or error
            self._logger.warning(
                "api request failed",
                extra={"event": "api.request.failed", "method": method, "path": path, "error": str(reason)},
            )
            raise ApiRequestError(None, f"{method} {path}: {reason}") from error

        if status in REDIRECT_STATUSES and location:
            return Redirect(status=status, location=location)

        if status >= 400:
            self._logger.info(
                "api request returned error status",
                extra={"event": "api.request.status", "method": method, "path": path, "status": status},
            )
        return Body(status=status, payload=_decode_payload(content))

    def _download(self, location: str) -> bytes:
        # Signed URL: the token must not be sent along.
        request = Request(location, headers={"User-Agent": USER_AGENT}, method="GET")
        try:
            with self._download_urlopen_fn(request, timeout=self._download_timeout_seconds) as response:
                return response.read()
        except HTTPError as error:
            raise ArtifactDownloadFailed(error.code, str(error.reason)) from error
        except (URLError, OSError, http.client.HTTPException) as error:
            reason = getattr(error, "reason", None) or error
            raise ArtifactDownloadFailed(None, str(reason)) from error

    def _build_headers(self, *, json_body: bool = False) -> dict[str, str]:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    @staticmethod
    def _expect_body(response: ApiResponse, expected_status: int, error_type: type[ApiRequestError]) -> dict[str, Any]:
        if not isinstance(response, Body) or response.status != expected_status:
            payload = response.payload if isinstance(response, Body) else None
            raise error_type(response.status, _message_from(payload))
        if not isinstance(response.payload, dict):
            raise error_type(response.status, "Unexpected payload: top-level value must be a JSON object")
        return response.payload

    def _map_run(self, payload: dict[str, Any]) -> RemoteRun | None:
        run_id = payload.get("id")
        if not isinstance(run_id, int):
            return None
        name = payload.get("name")
        status = payload.get("status")
        conclusion = payload.get("conclusion")
        return RemoteRun(
            id=run_id,
            name=name if isinstance(name, str) else "",
            status=status if isinstance(status, str) else "unknown",
            conclusion=conclusion if isinstance(conclusion, str) else None,
            created_at=parse_timestamp(payload.get("created_at")),
        )

    def _map_artifact(self, payload: dict[str, Any]) -> Artifact | None:
        artifact_id = payload.get("id")
        name = payload.get("name")
        if not isinstance(artifact_id, int) or not isinstance(name, str) or not name:
            return None
        size = payload.get("size_in_bytes")
        return Artifact(
            id=artifact_id,
            name=name,
            expired=bool(payload.get("expired", False)),
            size_in_bytes=size if isinstance(size, int) else None,
        )


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 API timestamp (`2024-05-01T10:00:00Z`) into an aware datetime."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _decode_payload(content: bytes) -> Any:
    text = content.decode("utf-8", errors="replace")
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _message_from(payload: Any) -> str | None:
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return None
