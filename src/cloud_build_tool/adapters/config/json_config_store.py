from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from cloud_build_tool.domain.entities import ProjectConfig
from cloud_build_tool.domain.errors import ConfigUnreadable, FileSystemError
from cloud_build_tool.domain.ports import ConfigStorePort


CONFIG_FILE_NAME = "app.config.json"


class JsonConfigStore(ConfigStorePort):
    """Flat JSON project configuration stored next to the generated project."""

    def __init__(self, directory: Path, *, file_name: str = CONFIG_FILE_NAME) -> None:
        self._path = directory / file_name
        self._logger = logging.getLogger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ProjectConfig | None:
        data = self._read_raw()
        if data is None:
            return None
        return ProjectConfig(
            app_name=_optional_str(data.get("appName")),
            store_url=_optional_str(data.get("storeUrl")),
            github_token=_optional_str(data.get("githubToken")),
            raw=data,
        )

    def save_token(self, token: str) -> None:
        """Merge `githubToken` into the config file, keeping every other key.

        Raises:
            ConfigUnreadable: The file exists but is not a JSON object; it is
                left untouched instead of being replaced.
            FileSystemError: The file could not be written.
        """
        data: dict[str, Any] = {}
        if self._path.exists():
            existing = self._read_raw()
            if existing is None:
                raise ConfigUnreadable(
                    f"{self._path} is not a valid JSON object; fix or remove it before saving the token"
                )
            data = existing

        data["githubToken"] = token
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as error:
            raise FileSystemError(f"Cannot write {self._path}: {error.strerror or error}", path=str(self._path)) from error
        self._logger.info(
            "token saved to project config",
            extra={"event": "config.token.saved", "config_path": str(self._path)},
        )

    def _read_raw(self) -> dict[str, Any] | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            self._logger.warning(
                "project config unreadable",
                extra={"event": "config.read.failed", "config_path": str(self._path), "error": str(error)},
            )
            return None
        return data if isinstance(data, dict) else None


def _optional_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None
