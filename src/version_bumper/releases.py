"""Release records and conversion of already-fetched upstream payloads."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import click
import yaml

from .utils import coerce_datetime

DOCKER_HUB_URL = "https://hub.docker.com"
_DOCKER_VERSION_TAG = re.compile(r"^\d+\.\d+(\.\d+)?$")


@dataclass(frozen=True)
class Release:
    """One upstream release, newest-first order is kept by the caller."""

    tag: str
    url: str
    published_at: Optional[datetime] = None
    name: Optional[str] = None
    body: Optional[str] = None


def release_from_github(payload: Mapping[str, Any]) -> Release:
    """Convert a GitHub release object into a Release."""
    tag = payload.get("tag_name")
    if not tag:
        raise ValueError("GitHub release is missing 'tag_name'.")
    published = payload.get("published_at") or payload.get("created_at")
    return Release(
        tag=str(tag),
        url=str(payload.get("html_url") or ""),
        published_at=coerce_datetime(published),
        name=str(payload["name"]) if payload.get("name") else None,
        body=str(payload["body"]) if payload.get("body") else None,
    )


def docker_hub_url(repo: str) -> str:
    """Return the Docker Hub page of an image repository."""
    if "/" not in repo:
        return f"{DOCKER_HUB_URL}/_/{repo}"
    if repo.startswith("library/"):
        return f"{DOCKER_HUB_URL}/_/{repo.removeprefix('library/')}"
    return f"{DOCKER_HUB_URL}/r/{repo}"


def latest_docker_tag(repo: str, results: Sequence[Mapping[str, Any]]) -> Release:
    """Pick the newest usable tag from a Docker Hub tag listing.

    Tags shaped like ``1.2`` or ``1.2.3`` win; otherwise the first tag that is
    not ``latest``, and as a last resort the first tag at all.
    """
    if not results:
        raise click.ClickException(f"No tags found for {repo}")
    chosen = next(
        (tag for tag in results if _DOCKER_VERSION_TAG.match(str(tag.get("name", "")))),
        None,
    )
    if chosen is None:
        chosen = next((tag for tag in results if tag.get("name") != "latest"), results[0])
    return Release(
        tag=str(chosen.get("name", "")),
        url=docker_hub_url(repo),
        published_at=coerce_datetime(chosen.get("last_updated")),
    )


def apply_release_filter(releases: Sequence[Release], release_filter: str) -> list[Release]:
    """Return the releases starting at the first whose tag or name contains the filter."""
    for index, release in enumerate(releases):
        if release_filter in release.tag or (release.name and release_filter in release.name):
            return list(releases[index:])
    raise click.ClickException(f"No release found matching filter: {release_filter}")


def _load_payload(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise click.ClickException(f"Cannot parse JSON in {path}: {exc.msg}") from exc
    return yaml.safe_load(text)


def _as_mappings(items: Iterable[object], path: Path) -> list[Mapping[str, Any]]:
    mappings: list[Mapping[str, Any]] = []
    for item in items:
        if not isinstance(item, Mapping):
            raise click.ClickException(f"Expected release objects in {path}.")
        mappings.append(item)
    return mappings


def load_releases(path: Path, *, source: str = "github", repo: str = "") -> list[Release]:
    """Load releases from a saved GitHub or Docker Hub API response."""
    payload = _load_payload(path)
    if source == "dockerhub":
        results = payload.get("results") if isinstance(payload, Mapping) else payload
        if not isinstance(results, list):
            raise click.ClickException(f"Expected a Docker Hub tag listing in {path}.")
        return [latest_docker_tag(repo, _as_mappings(results, path))]
    if not isinstance(payload, list):
        raise click.ClickException(f"Expected a list of GitHub releases in {path}.")
    try:
        return [release_from_github(item) for item in _as_mappings(payload, path)]
    except ValueError as exc:
        raise click.ClickException(f"{path}: {exc}") from exc
