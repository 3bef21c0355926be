from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from cloud_build_tool.adapters.config.json_config_store import JsonConfigStore
from cloud_build_tool.adapters.console.progress import ConsoleProgressReporter
from cloud_build_tool.adapters.filesystem.local_filesystem import LocalFileSystemAdapter
from cloud_build_tool.adapters.git_client.shell_git_client import ShellGitClientAdapter
from cloud_build_tool.adapters.workflow_api.github_actions import GitHubActionsApiAdapter
from cloud_build_tool.application.naming import format_size
from cloud_build_tool.application.use_cases.cloud_build import (
    BuildSettings,
    BuildSummary,
    CloudBuildOrchestrator,
)
from cloud_build_tool.cli.config import BuildConfig, load_config
from cloud_build_tool.domain.ports import ConfigStorePort, ProgressReporter
from cloud_build_tool.logging_utils import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront-build",
        description="Build the generated storefront app (APK/AAB/iOS archive) in the cloud via GitHub Actions.",
    )

    parser.add_argument("-t", "--token", required=False, help="GitHub personal access token. Falls back to GITHUB_TOKEN.")
    parser.add_argument("-r", "--repo", required=False, help="GitHub repository name (default: derived from app name).")
    parser.add_argument(
        "-o",
        "--output",
        required=False,
        default="./builds",
        help="Output directory for build artifacts (default: ./builds).",
    )
    parser.add_argument("--public", action="store_true", help="Create a public repository instead of private.")
    parser.add_argument(
        "--cwd",
        required=False,
        help="Project directory holding output/ and app.config.json (default: current directory).",
    )
    parser.add_argument(
        "--save-token",
        action="store_true",
        help="Persist the token into app.config.json for future builds.",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging(os.environ.get("LOG_LEVEL", "WARNING"))
    logger = logging.getLogger(__name__)

    parser = build_parser()
    args = parser.parse_args(argv)
    config_store = JsonConfigStore(Path(args.cwd or ".").expanduser().resolve())
    try:
        config = load_config(args=args, env=os.environ, project_config=config_store.load())
    except ValueError as error:
        parser.error(str(error))

    if config.save_token:
        try:
            config_store.save_token(config.token)
        except RuntimeError as error:
            logger.exception("token save failed", extra={"event": "cli.token.save_failed"})
            print(f"\n  Error: {error}\n", file=sys.stderr)
            return 1
        print(f"  Token saved to {config_store.path.name}")

    logger.info(
        "cli configuration resolved",
        extra={
            "event": "cli.config.resolved",
            "cwd": str(config.cwd),
            "token_source": config.token_source,
            "repo_name": config.repo_name,
            "output_path": str(config.output_path),
            "is_public": config.is_public,
            "api_base_url": config.api_base_url,
        },
    )

    print("\n  Storefront App - Cloud Build")
    progress = ConsoleProgressReporter()
    try:
        orchestrator = _build_orchestrator(config, config_store, progress)
        summary = orchestrator.execute(
            cwd=config.cwd,
            token=config.token,
            output_path=config.output_path,
            repo_name=config.repo_name,
            is_public=config.is_public,
        )
    except RuntimeError as error:
        logger.exception("cli execution failed", extra={"event": "cli.execution.failed"})
        print(f"\n  Error: {error}\n", file=sys.stderr)
        return 1

    _print_summary(summary)
    return 0


def _build_orchestrator(
    config: BuildConfig,
    config_store: ConfigStorePort,
    progress: ProgressReporter,
) -> CloudBuildOrchestrator:
    workflow_api = GitHubActionsApiAdapter(
        token=config.token,
        api_base_url=config.api_base_url,
        timeout_seconds=config.api_timeout_seconds,
        download_timeout_seconds=config.download_timeout_seconds,
    )

    return CloudBuildOrchestrator(
        workflow_api=workflow_api,
        git_client=ShellGitClientAdapter(git_executable=config.git_executable),
        filesystem=LocalFileSystemAdapter(),
        config_store=config_store,
        progress=progress,
        settings=BuildSettings(
            poll_interval_seconds=config.poll_interval_seconds,
            timeout_seconds=config.build_timeout_seconds,
            settle_seconds=config.settle_seconds,
            git_host=config.git_host,
        ),
    )


def _print_summary(summary: BuildSummary) -> None:
    print("\n  Build complete!\n")
    print(f"  Artifacts: {summary.output_path}")
    print(f"  Repo:      {summary.repo_url}")
    print(f"  Runs:      {summary.succeeded_runs} succeeded, {summary.failed_runs} failed")

    for item in summary.saved_artifacts:
        kind = "extracted" if item.extracted else "raw archive"
        print(f"  - {item.path.name} ({format_size(item.size)}, {kind})")
    for item in summary.failed_artifacts:
        print(f"  - {item.artifact_name}: failed ({item.error})")
    print("")
