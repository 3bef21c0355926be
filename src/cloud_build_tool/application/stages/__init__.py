"""Build stages executed in order by the cloud build orchestrator."""

from .authenticate import AuthenticateStage
from .download_artifacts import DownloadArtifactsStage
from .ensure_repo import EnsureRepoStage
from .push_source import PushSourceStage
from .validate_project import ValidateProjectStage
from .wait_for_builds import WaitForBuildsStage

__all__ = [
	"ValidateProjectStage",
	"AuthenticateStage",
	"EnsureRepoStage",
	"PushSourceStage",
	"WaitForBuildsStage",
	"DownloadArtifactsStage",
]
