import pytest

from cloud_build_tool.application.naming import (
    DEFAULT_REPO_NAME,
    artifact_filename,
    derive_repo_name,
    format_size,
    sanitize_app_name,
)


@pytest.mark.parametrize(
    ("artifact_name", "expected"),
    [
        ("release-bundle-1", "MyStore-release.aab"),
        ("app-release-aab", "MyStore-release.aab"),
        ("app-release-signed", "MyStore-release-signed.apk"),
        ("Release", "MyStore-release.apk"),
        ("app-debug", "MyStore-debug.apk"),
        ("iOS-build", "MyStore-ios.xcarchive.zip"),
        ("xcode-archive", "MyStore-ios.xcarchive.zip"),
        ("foo", "MyStore-foo"),
    ],
)
def test_artifact_filename(artifact_name, expected):
    assert artifact_filename(artifact_name, "My Store!") == expected


def test_release_keyword_wins_over_debug():
    assert artifact_filename("release-with-debug-symbols", "Shop") == "Shop-release.apk"


def test_sanitize_app_name_keeps_dash_and_underscore():
    assert sanitize_app_name("Bro_Drops-App 2.0") == "Bro_Drops-App20"


@pytest.mark.parametrize(
    ("app_name", "expected"),
    [
        ("My Store!", "my-store"),
        ("  Bro--Drops  ", "bro-drops"),
        ("Café Shop", "caf-shop"),
        ("!!!", DEFAULT_REPO_NAME),
    ],
)
def test_derive_repo_name(app_name, expected):
    assert derive_repo_name(app_name) == expected


@pytest.mark.parametrize(
    ("size", "expected"),
    [(512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024 + 1024 * 512, "5.5 MB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected
