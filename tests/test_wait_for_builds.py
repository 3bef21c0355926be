from datetime import timedelta

import pytest

from cloud_build_tool.application.stages import WaitForBuildsStage
from cloud_build_tool.application.stages.wait_for_builds import run_created_after
from cloud_build_tool.domain.entities import BuildContext
from cloud_build_tool.domain.errors import BuildTimeout, NoRunsDetected, RunFetchFailed, RunListFailed
from fakes import PUSH_TIME, FakeClock, FakeWorkflowApi, RecordingProgressReporter, make_run


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def progress():
    return RecordingProgressReporter()


@pytest.fixture
def context(tmp_path):
    build_context = BuildContext(cwd=tmp_path, token="ghp_secret", output_path=tmp_path / "builds")
    build_context.owner = "octo"
    build_context.repo_name = "my-store"
    build_context.push_started_at = PUSH_TIME
    return build_context


def make_stage(api, clock, **kwargs):
    return WaitForBuildsStage(
        api,
        clock=clock.now,
        monotonic=clock.monotonic,
        sleep=clock.sleep,
        **kwargs,
    )


def test_waits_for_runs_to_appear_and_complete(context, clock, progress):
    api = FakeWorkflowApi(
        run_lists=[[], [make_run(1, created_at=PUSH_TIME + timedelta(seconds=10))]],
        run_states={
            1: [
                make_run(1, "queued"),
                make_run(1, "in_progress"),
                make_run(1, "completed", "success"),
            ]
        },
    )

    result = make_stage(api, clock).execute(context, progress)

    assert [run.id for run in context.completed_runs] == [1]
    assert context.discovered_run_ids == [1]
    assert result.metadata == {"run_ids": [1], "succeeded": 1, "failed": 0}
    assert clock.sleeps == [5.0, 15.0, 15.0, 15.0]
    assert "Waiting for builds to start..." in progress.messages("info")


def test_discovery_ignores_runs_created_before_grace_window(context, clock, progress):
    old_run = make_run(9, created_at=PUSH_TIME - timedelta(seconds=121))
    api = FakeWorkflowApi(run_lists=[[old_run]])

    with pytest.raises(NoRunsDetected):
        make_stage(api, clock, timeout_seconds=60.0).execute(context, progress)

    assert api.calls_named("get_run") == []
    assert clock.offset <= 60.0


def test_discovery_accepts_runs_inside_grace_window(context, clock, progress):
    recent = make_run(3, created_at=PUSH_TIME - timedelta(seconds=119))
    old = make_run(2, created_at=PUSH_TIME - timedelta(seconds=300))
    api = FakeWorkflowApi(
        run_lists=[[recent, old]],
        run_states={3: [make_run(3, "completed", "success")]},
    )

    make_stage(api, clock).execute(context, progress)

    assert context.discovered_run_ids == [3]


def test_run_created_after_boundaries():
    cutoff = PUSH_TIME - timedelta(seconds=120)

    assert run_created_after(make_run(1, created_at=cutoff + timedelta(milliseconds=1)), cutoff)
    assert not run_created_after(make_run(1, created_at=cutoff), cutoff)
    assert not run_created_after(make_run(1, created_at=None), cutoff)
    assert run_created_after(make_run(1, created_at=PUSH_TIME.replace(tzinfo=None)), cutoff)


def test_times_out_when_runs_never_complete(context, clock, progress):
    api = FakeWorkflowApi(
        run_lists=[[make_run(1)]],
        run_states={1: [make_run(1, "in_progress")]},
    )

    with pytest.raises(BuildTimeout):
        make_stage(api, clock, timeout_seconds=120.0).execute(context, progress)

    assert clock.offset == 120.0
    assert context.completed_runs == []


def test_failed_runs_are_reported_not_raised(context, clock, progress):
    api = FakeWorkflowApi(
        run_lists=[[make_run(1), make_run(2)]],
        run_states={
            1: [make_run(1, "completed", "success")],
            2: [make_run(2, "completed", "failure")],
        },
    )

    result = make_stage(api, clock).execute(context, progress)

    assert result.metadata["failed"] == 1
    assert len(result.warnings) == 1
    assert [run.conclusion for run in context.completed_runs] == ["success", "failure"]


def test_completed_runs_are_recorded_once_and_not_refetched(context, clock, progress):
    api = FakeWorkflowApi(
        run_lists=[[make_run(1), make_run(2)]],
        run_states={
            1: [make_run(1, "completed", "success")],
            2: [make_run(2, "queued"), make_run(2, "in_progress"), make_run(2, "completed", "success")],
        },
    )

    make_stage(api, clock).execute(context, progress)

    assert [run.id for run in context.completed_runs] == [1, 2]
    assert api.calls_named("get_run").count(("get_run", 1)) == 1
    assert api.calls_named("get_run").count(("get_run", 2)) == 3


def test_flaky_status_fetch_is_retried_next_interval(context, clock, progress):
    api = FakeWorkflowApi(
        run_lists=[[make_run(1)]],
        run_states={1: [RunFetchFailed(502, "Bad Gateway"), make_run(1, "completed", "success")]},
    )

    make_stage(api, clock).execute(context, progress)

    assert [run.id for run in context.completed_runs] == [1]
    assert any("Could not fetch run 1" in line for line in progress.messages("warning"))


def test_flaky_run_listing_is_retried_next_interval(context, clock, progress):
    api = FakeWorkflowApi(
        run_lists=[RunListFailed(None, "timed out"), [make_run(1)]],
        run_states={1: [make_run(1, "completed", "success")]},
    )

    make_stage(api, clock).execute(context, progress)

    assert context.discovered_run_ids == [1]


def test_falls_back_to_stage_start_when_push_time_unknown(context, clock, progress):
    context.push_started_at = None
    clock.offset = 600.0
    api = FakeWorkflowApi(
        run_lists=[[make_run(1, created_at=PUSH_TIME)]],
    )

    with pytest.raises(NoRunsDetected):
        make_stage(api, clock, timeout_seconds=30.0).execute(context, progress)
