from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from cloud_build_tool.domain.entities import ProjectConfig


@dataclass(slots=True)
class BuildConfig:
    cwd: Path
    token: str = field(repr=False)
    token_source: str
    repo_name: str | None
    output_path: Path
    is_public: bool
    save_token: bool
    api_base_url: str
    git_host: str
    git_executable: str
    api_timeout_seconds: float
    download_timeout_seconds: float
    poll_interval_seconds: float
    build_timeout_seconds: float
    settle_seconds: float


def load_config(args, env: Mapping[str, str], project_config: ProjectConfig | None = None) -> BuildConfig:
    """Resolve build settings from CLI flags, environment and the saved project config.

    Token precedence: `--token`, then `GITHUB_TOKEN`, then `githubToken` from
    the saved project configuration.
    """
    cwd = Path(_normalize_empty(args.cwd) or ".").expanduser().resolve()

    token = _normalize_empty(args.token)
    token_source = "flag"
    if not token:
        token = _normalize_empty(env.get("GITHUB_TOKEN"))
        token_source = "env"
    if not token and project_config is not None:
        token = _normalize_empty(project_config.github_token)
        token_source = "config"

    if not token:
        raise ValueError("Missing GitHub token. Use --token or set GITHUB_TOKEN")

    if args.save_token and token_source == "config":
        raise ValueError("--save-token needs a token from --token or GITHUB_TOKEN")

    output_raw = _normalize_empty(args.output) or "./builds"
    output_path = Path(output_raw).expanduser()
    if not output_path.is_absolute():
        output_path = cwd / output_path

    api_base_url = (_normalize_empty(env.get("GITHUB_API_BASE_URL")) or "https://api.github.com").rstrip("/")
    git_host = _normalize_empty(env.get("GITHUB_HOST")) or "github.com"
    git_executable = _normalize_empty(env.get("GIT_EXECUTABLE")) or "git"

    return BuildConfig(
        cwd=cwd,
        token=token,
        token_source=token_source,
        repo_name=_normalize_empty(args.repo),
        output_path=output_path,
        is_public=bool(args.public),
        save_token=bool(args.save_token),
        api_base_url=api_base_url,
        git_host=git_host,
        git_executable=git_executable,
        api_timeout_seconds=_parse_float(env, "GITHUB_TIMEOUT_SECONDS", 30.0, minimum=1.0),
        download_timeout_seconds=_parse_float(env, "GITHUB_DOWNLOAD_TIMEOUT_SECONDS", 60.0, minimum=1.0),
        poll_interval_seconds=_parse_float(env, "BUILD_POLL_INTERVAL_SECONDS", 15.0, minimum=0.1),
        build_timeout_seconds=_parse_float(env, "BUILD_TIMEOUT_SECONDS", 1800.0, minimum=1.0),
        settle_seconds=_parse_float(env, "BUILD_SETTLE_SECONDS", 5.0, minimum=0.0),
    )


def _parse_float(env: Mapping[str, str], name: str, default: float, *, minimum: float) -> float:
    raw = _normalize_empty(env.get(name))
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be a number") from error
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return parsed


def _normalize_empty(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
