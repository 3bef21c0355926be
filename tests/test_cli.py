import json
from pathlib import Path

import pytest

from cloud_build_tool.adapters.filesystem.local_filesystem import LocalFileSystemAdapter
from cloud_build_tool.application.use_cases.cloud_build import BuildSummary, CloudBuildOrchestrator
from cloud_build_tool.cli import main as cli_main
from cloud_build_tool.cli.config import load_config
from cloud_build_tool.domain.entities import ProjectConfig, SavedArtifact
from cloud_build_tool.domain.errors import MissingOutput
from fakes import (
    FakeClock,
    FakeConfigStore,
    FakeGitClient,
    FakeWorkflowApi,
    make_run,
    write_generated_project,
)


def parse(*argv):
    return cli_main.build_parser().parse_args(list(argv))


def test_flag_token_wins_over_env_and_config(tmp_path):
    config = load_config(
        parse("--token", "ghp_flag", "--cwd", str(tmp_path)),
        {"GITHUB_TOKEN": "ghp_env"},
        ProjectConfig(app_name="Shop", github_token="ghp_config"),
    )

    assert config.token == "ghp_flag"
    assert config.token_source == "flag"


def test_env_token_wins_over_config(tmp_path):
    config = load_config(
        parse("--cwd", str(tmp_path)),
        {"GITHUB_TOKEN": "ghp_env"},
        ProjectConfig(app_name="Shop", github_token="ghp_config"),
    )

    assert (config.token, config.token_source) == ("ghp_env", "env")


def test_config_token_is_last_resort(tmp_path):
    config = load_config(parse("--cwd", str(tmp_path)), {}, ProjectConfig(app_name="Shop", github_token="ghp_config"))

    assert (config.token, config.token_source) == ("ghp_config", "config")


def test_missing_token_is_rejected(tmp_path):
    with pytest.raises(ValueError, match="Missing GitHub token"):
        load_config(parse("--cwd", str(tmp_path)), {"GITHUB_TOKEN": "  "}, None)


def test_save_token_requires_explicit_token(tmp_path):
    with pytest.raises(ValueError, match="--save-token"):
        load_config(
            parse("--cwd", str(tmp_path), "--save-token"),
            {},
            ProjectConfig(app_name="Shop", github_token="ghp_config"),
        )


def test_defaults_and_relative_output(tmp_path):
    config = load_config(parse("--cwd", str(tmp_path), "-t", "ghp_x", "-o", "dist"), {})

    assert config.output_path == tmp_path.resolve() / "dist"
    assert config.repo_name is None
    assert config.is_public is False
    assert config.api_base_url == "https://api.github.com"
    assert config.poll_interval_seconds == 15.0
    assert config.build_timeout_seconds == 1800.0
    assert config.settle_seconds == 5.0


def test_env_overrides_timing_and_endpoints(tmp_path):
    config = load_config(
        parse("--cwd", str(tmp_path), "-t", "ghp_x", "--public", "-r", "shop"),
        {
            "GITHUB_API_BASE_URL": "https://ghe.example.com/api/v3/",
            "GITHUB_HOST": "ghe.example.com",
            "BUILD_POLL_INTERVAL_SECONDS": "2",
            "BUILD_TIMEOUT_SECONDS": "90",
        },
    )

    assert config.api_base_url == "https://ghe.example.com/api/v3"
    assert config.git_host == "ghe.example.com"
    assert config.poll_interval_seconds == 2.0
    assert config.build_timeout_seconds == 90.0
    assert config.is_public is True
    assert config.repo_name == "shop"


@pytest.mark.parametrize("value", ["soon", "0"])
def test_invalid_timeout_is_rejected(tmp_path, value):
    with pytest.raises(ValueError, match="BUILD_TIMEOUT_SECONDS"):
        load_config(parse("--cwd", str(tmp_path), "-t", "ghp_x"), {"BUILD_TIMEOUT_SECONDS": value})


def test_config_repr_hides_token(tmp_path):
    config = load_config(parse("--cwd", str(tmp_path), "-t", "ghp_secret"), {})

    assert "ghp_secret" not in repr(config)


class _StubOrchestrator:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def execute(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def cli_env(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr(cli_main, "configure_logging", lambda level: None)


def _use_orchestrator(monkeypatch, orchestrator):
    monkeypatch.setattr(cli_main, "_build_orchestrator", lambda config, config_store, progress: orchestrator)


def test_main_without_token_exits_with_usage_error(tmp_path, cli_env, capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli_main.main(["--cwd", str(tmp_path)])

    assert excinfo.value.code == 2
    assert "Missing GitHub token" in capsys.readouterr().err


def test_main_reports_build_errors(tmp_path, cli_env, monkeypatch, capsys):
    _use_orchestrator(monkeypatch, _StubOrchestrator(MissingOutput("Output directory not found")))

    exit_code = cli_main.main(["--cwd", str(tmp_path), "--token", "ghp_x"])

    assert exit_code == 1
    assert "Error: Output directory not found" in capsys.readouterr().err


def test_main_prints_summary(tmp_path, cli_env, monkeypatch, capsys):
    artifact_path = tmp_path / "builds" / "Shop-debug.apk"
    summary = BuildSummary(
        repo_full_name="octo/shop",
        repo_url="https://github.com/octo/shop",
        output_path=tmp_path / "builds",
        completed_runs=(),
        succeeded_runs=1,
        failed_runs=0,
        saved_artifacts=(SavedArtifact(artifact_name="app-debug", path=artifact_path, size=2048, extracted=True),),
        failed_artifacts=(),
        stage_results=(),
    )
    orchestrator = _StubOrchestrator(summary)
    _use_orchestrator(monkeypatch, orchestrator)

    exit_code = cli_main.main(["--cwd", str(tmp_path), "--token", "ghp_x", "--repo", "shop"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Build complete!" in out
    assert "Shop-debug.apk (2.0 KB, extracted)" in out
    assert orchestrator.calls[0]["repo_name"] == "shop"
    assert orchestrator.calls[0]["cwd"] == Path(tmp_path).resolve()


def test_main_saves_token_when_asked(tmp_path, cli_env, monkeypatch):
    (tmp_path / "app.config.json").write_text(json.dumps({"appName": "Shop"}))
    _use_orchestrator(monkeypatch, _StubOrchestrator(MissingOutput("stop here")))

    cli_main.main(["--cwd", str(tmp_path), "--token", "ghp_keep", "--save-token"])

    assert json.loads((tmp_path / "app.config.json").read_text())["githubToken"] == "ghp_keep"


def test_main_reports_filesystem_errors_as_one_line(tmp_path, cli_env, monkeypatch, capsys):
    write_generated_project(tmp_path)
    (tmp_path / "builds").write_text("not a directory")
    clock = FakeClock()

    def build_orchestrator(config, config_store, progress):
        return CloudBuildOrchestrator(
            workflow_api=FakeWorkflowApi(
                run_lists=[[make_run(1)]],
                run_states={1: [make_run(1, "completed", "success")]},
            ),
            git_client=FakeGitClient(),
            filesystem=LocalFileSystemAdapter(),
            config_store=FakeConfigStore(ProjectConfig(app_name="Shop")),
            progress=progress,
            clock=clock.now,
            monotonic=clock.monotonic,
            sleep=clock.sleep,
        )

    monkeypatch.setattr(cli_main, "_build_orchestrator", build_orchestrator)

    exit_code = cli_main.main(["--cwd", str(tmp_path), "--token", "ghp_x", "--output", str(tmp_path / "builds")])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "Error: Cannot create directory" in err
    assert "Traceback" not in err


def test_main_does_not_overwrite_unparseable_config_when_saving_token(tmp_path, cli_env, monkeypatch, capsys):
    config_path = tmp_path / "app.config.json"
    config_path.write_text("{not json")
    orchestrator = _StubOrchestrator(MissingOutput("unreachable"))
    _use_orchestrator(monkeypatch, orchestrator)

    exit_code = cli_main.main(["--cwd", str(tmp_path), "--token", "ghp_keep", "--save-token"])

    assert exit_code == 1
    assert "not a valid JSON object" in capsys.readouterr().err
    assert config_path.read_text() == "{not json"
    assert orchestrator.calls == []
