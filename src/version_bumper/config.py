"""Configuration helpers for tracked applications."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping, MutableMapping, Optional, cast

import yaml

from .versions import LAG_GRANULARITIES, LagGranularity

AppType = Literal["kubernetes", "helm", "manual"]
ReleaseSource = Literal["github", "dockerhub"]

DEFAULT_CONFIG_FILE = Path("versions-config.yaml")
APP_TYPE_CHOICES: tuple[AppType, ...] = ("kubernetes", "helm", "manual")
SOURCE_CHOICES: tuple[ReleaseSource, ...] = ("github", "dockerhub")
UNBOUNDED_VALUES = {"", "infinity", "inf", "none"}


@dataclass(frozen=True)
class Target:
    """One value inside one configuration file that tracks the application."""

    file: Path
    path: str


@dataclass
class AppConfig:
    """Structured representation of one tracked application."""

    repo: str
    name: str = ""
    type: AppType = "kubernetes"
    source: ReleaseSource = "github"
    targets: list[Target] = field(default_factory=list)
    version: str = ""
    description: str = ""
    release_filter: str = ""
    max_releases: Optional[int] = None
    lag: int = 0
    lag_granularity: LagGranularity = "minor"
    allow_prereleases: bool = False

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        _, _, repo_name = self.repo.rpartition("/")
        return repo_name or self.repo

    @property
    def composite(self) -> bool:
        """Kubernetes targets hold ``image:tag`` values."""
        return self.type == "kubernetes"


def _choice(raw: Mapping[str, Any], key: str, choices: tuple[str, ...], default: str) -> str:
    value = raw.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise ValueError(f"Config option '{key}' must be a string.")
    normalized = value.strip().lower()
    if normalized not in choices:
        allowed = ", ".join(choices)
        raise ValueError(f"Config option '{key}' must be one of: {allowed}")
    return normalized


def parse_max_releases(value: object) -> Optional[int]:
    """Parse a release bound where empty or ``Infinity`` means unbounded."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Config option 'max_releases' must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value == float("inf"):
        return None
    text = str(value).strip()
    if text.lower() in UNBOUNDED_VALUES:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise ValueError("Config option 'max_releases' must be an integer.") from exc


def _parse_targets(raw: object, base_dir: Path) -> list[Target]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("Config option 'targets' must be a list.")
    targets: list[Target] = []
    for item in raw:
        if not isinstance(item, Mapping) or not item.get("file") or not item.get("path"):
            raise ValueError("Each target needs a 'file' and a 'path'.")
        file_path = Path(str(item["file"])).expanduser()
        if not file_path.is_absolute():
            file_path = base_dir / file_path
        targets.append(Target(file=file_path, path=str(item["path"])))
    return targets


def parse_app_config(raw: Mapping[str, Any], *, base_dir: Path = Path(".")) -> AppConfig:
    """Validate one application mapping."""
    repo = str(raw.get("repo") or "").strip()
    if not repo:
        raise ValueError("Application missing required 'repo'")

    lag_raw = raw.get("lag", 0)
    if isinstance(lag_raw, bool) or not isinstance(lag_raw, int) or lag_raw < 0:
        raise ValueError("Config option 'lag' must be a non-negative integer.")

    allow_prereleases = raw.get("allow_prereleases", False)
    if not isinstance(allow_prereleases, bool):
        raise ValueError("Config option 'allow_prereleases' must be a boolean.")

    version_raw = raw.get("version")
    return AppConfig(
        repo=repo,
        name=str(raw.get("name") or ""),
        type=cast(AppType, _choice(raw, "type", APP_TYPE_CHOICES, "kubernetes")),
        source=cast(ReleaseSource, _choice(raw, "source", SOURCE_CHOICES, "github")),
        targets=_parse_targets(raw.get("targets"), base_dir),
        version="" if version_raw is None else str(version_raw),
        description=str(raw.get("description") or ""),
        release_filter=str(raw.get("release_filter") or ""),
        max_releases=parse_max_releases(raw.get("max_releases")),
        lag=lag_raw,
        lag_granularity=cast(
            LagGranularity, _choice(raw, "lag_granularity", LAG_GRANULARITIES, "minor")
        ),
        allow_prereleases=allow_prereleases,
    )


def load_config(path: Path) -> list[AppConfig]:
    """Load all tracked applications from disk.

    Relative target files resolve against the directory of the config file.
    """
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, MutableMapping):
        raise ValueError("Config root must be a mapping")
    applications = raw.get("applications") or []
    if not isinstance(applications, list):
        raise ValueError("Config option 'applications' must be a list.")
    apps: list[AppConfig] = []
    for entry in applications:
        if not isinstance(entry, Mapping):
            raise ValueError("Each application must be a mapping.")
        apps.append(parse_app_config(entry, base_dir=path.parent))
    return apps


def find_application(apps: list[AppConfig], repo: str) -> AppConfig:
    """Return the application tracking ``repo``."""
    for app in apps:
        if app.repo == repo:
            return app
    raise ValueError(f"No application tracks repo '{repo}'.")


def dump_app_config(app: AppConfig) -> dict[str, Any]:
    """Convert an AppConfig into a plain dictionary suitable for YAML output."""
    data: dict[str, Any] = {"repo": app.repo}
    if app.name:
        data["name"] = app.name
    if app.type != "kubernetes":
        data["type"] = app.type
    if app.source != "github":
        data["source"] = app.source
    if app.version:
        data["version"] = app.version
    if app.description:
        data["description"] = app.description
    if app.release_filter:
        data["release_filter"] = app.release_filter
    if app.max_releases is not None:
        data["max_releases"] = app.max_releases
    if app.lag:
        data["lag"] = app.lag
    if app.lag_granularity != "minor":
        data["lag_granularity"] = app.lag_granularity
    if app.allow_prereleases:
        data["allow_prereleases"] = app.allow_prereleases
    if app.targets:
        data["targets"] = [{"file": str(t.file), "path": t.path} for t in app.targets]
    return data


def save_config(apps: list[AppConfig], path: Path) -> None:
    """Write the applications to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(
            {"applications": [dump_app_config(app) for app in apps]}, handle, sort_keys=False
        )
