from __future__ import annotations
"""Deterministic names for repositories and downloaded build outputs."""

import re


DEFAULT_REPO_NAME = "storefront-app-build"

_UNSAFE_APP_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_UNSAFE_REPO_CHARS = re.compile(r"[^a-z0-9-]")
_REPEATED_DASHES = re.compile(r"-+")

# Checked in order; the first keyword found in the artifact name wins.
_ARTIFACT_SUFFIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("release-bundle", "release-aab"), "release.aab"),
    (("release-signed",), "release-signed.apk"),
    (("release",), "release.apk"),
    (("debug",), "debug.apk"),
    (("ios", "archive"), "ios.xcarchive.zip"),
)


def sanitize_app_name(app_name: str) -> str:
    """Drop every character outside `[A-Za-z0-9_-]`."""
    return _UNSAFE_APP_CHARS.sub("", app_name)


def derive_repo_name(app_name: str) -> str:
    """Lowercase slug of the app name, e.g. `My Store!` -> `my-store`."""
    slug = _UNSAFE_REPO_CHARS.sub("-", app_name.lower())
    slug = _REPEATED_DASHES.sub("-", slug).strip("-")
    return slug or DEFAULT_REPO_NAME


def artifact_filename(artifact_name: str, app_name: str) -> str:
    """Map a CI artifact name to the local output file name.

    Examples:
        `release-bundle-1`, `My Store!` -> `MyStore-release.aab`
        `app-debug`, `My Store!` -> `MyStore-debug.apk`
        `foo`, `My Store!` -> `MyStore-foo`
    """
    safe_name = sanitize_app_name(app_name)
    lowered = artifact_name.lower()
    for keywords, suffix in _ARTIFACT_SUFFIXES:
        if any(keyword in lowered for keyword in keywords):
            return f"{safe_name}-{suffix}"
    return f"{safe_name}-{artifact_name}"


def raw_archive_filename(artifact_name: str) -> str:
    return f"{artifact_name}.zip"


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
