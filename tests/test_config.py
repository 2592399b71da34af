"""Unit tests for configuration helpers."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from version_bumper.config import (
    AppConfig,
    Target,
    dump_app_config,
    find_application,
    load_config,
    parse_app_config,
    parse_max_releases,
    save_config,
)


def write_yaml(path: Path, content: object) -> None:
    path.write_text(yaml.safe_dump(content, sort_keys=False), encoding="utf-8")


def test_load_config_resolves_targets_relative_to_config(tmp_path: Path) -> None:
    config_path = tmp_path / "versions-config.yaml"
    write_yaml(
        config_path,
        {
            "applications": [
                {
                    "repo": "owner/app",
                    "targets": [{"file": "apps/app.yaml", "path": "spec.image"}],
                },
                {"repo": "owner/tool", "type": "manual", "version": "v1.4.0"},
            ]
        },
    )

    apps = load_config(config_path)

    assert [app.repo for app in apps] == ["owner/app", "owner/tool"]
    assert apps[0].type == "kubernetes"
    assert apps[0].composite
    assert apps[0].targets == [Target(file=tmp_path / "apps/app.yaml", path="spec.image")]
    assert apps[1].type == "manual"
    assert apps[1].version == "v1.4.0"
    assert not apps[1].composite


def test_load_config_keeps_defaults() -> None:
    app = parse_app_config({"repo": "owner/app"})

    assert app.source == "github"
    assert app.max_releases is None
    assert app.lag == 0
    assert app.lag_granularity == "minor"
    assert not app.allow_prereleases
    assert app.display_name == "app"


def test_parse_app_config_requires_repo() -> None:
    with pytest.raises(ValueError, match="missing required 'repo'"):
        parse_app_config({"name": "Nameless"})


def test_parse_app_config_rejects_unknown_type() -> None:
    with pytest.raises(ValueError, match="'type' must be one of"):
        parse_app_config({"repo": "owner/app", "type": "terraform"})


def test_parse_app_config_rejects_negative_lag() -> None:
    with pytest.raises(ValueError, match="'lag'"):
        parse_app_config({"repo": "owner/app", "lag": -1})


def test_parse_app_config_requires_target_path() -> None:
    with pytest.raises(ValueError, match="needs a 'file' and a 'path'"):
        parse_app_config({"repo": "owner/app", "targets": [{"file": "a.yaml"}]})


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, None), ("Infinity", None), ("", None), (5, 5), ("3", 3), (float("inf"), None)],
)
def test_parse_max_releases(raw: object, expected: int | None) -> None:
    assert parse_max_releases(raw) == expected


def test_parse_max_releases_rejects_text() -> None:
    with pytest.raises(ValueError, match="max_releases"):
        parse_max_releases("many")


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    config_path = tmp_path / "versions-config.yaml"
    write_yaml(config_path, ["owner/app"])

    with pytest.raises(ValueError, match="mapping"):
        load_config(config_path)


def test_find_application() -> None:
    apps = [AppConfig(repo="owner/a"), AppConfig(repo="owner/b", name="Bee")]

    assert find_application(apps, "owner/b").display_name == "Bee"
    with pytest.raises(ValueError, match="No application tracks repo"):
        find_application(apps, "owner/c")


def test_dump_app_config_omits_defaults() -> None:
    app = AppConfig(repo="owner/app", type="helm", lag=1)

    assert dump_app_config(app) == {"repo": "owner/app", "type": "helm", "lag": 1}


def test_save_config_round_trips(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "versions-config.yaml"
    apps = [
        AppConfig(
            repo="owner/app",
            name="App",
            targets=[Target(file=tmp_path / "app.yaml", path="image")],
            max_releases=3,
        )
    ]

    save_config(apps, config_path)

    assert load_config(config_path) == apps
