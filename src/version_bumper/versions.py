"""Version normalization, ordering, and release window selection."""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Literal, NamedTuple, Optional, Protocol, Sequence, TypeVar

LagGranularity = Literal["major", "minor", "patch"]

LAG_GRANULARITIES: tuple[LagGranularity, ...] = ("major", "minor", "patch")

PRERELEASE_MARKERS: tuple[str, ...] = ("alpha", "beta", "rc", "next", "canary", "pre")

_VERSION_TAIL_PATTERN = re.compile(r"(\d+\.\d+.*)$")
# The marker must be its own segment: `-rc.1`, `-beta2`, `-alpha` qualify but
# `-preview` or `-prepared` do not.
_PRERELEASE_PATTERN = re.compile(
    r"-(?:" + "|".join(PRERELEASE_MARKERS) + r")(?=$|[.\-+_]|\d)",
    re.IGNORECASE,
)
_LEADING_DIGITS = re.compile(r"\d+")

_GROUP_DEPTH: dict[str, int] = {"major": 1, "minor": 2, "patch": 3}


class Tagged(Protocol):
    tag: str


T = TypeVar("T", bound=Tagged)


class ParsedVersion(NamedTuple):
    """Canonical components of a normalized version."""

    core: tuple[int, ...]
    prerelease: tuple[str, ...]


def normalize_version(raw: str) -> str:
    """Strip registry prefixes and a leading ``v`` from a version tag.

    Everything from the first ``<digits>.<digits>`` run onward is kept, so
    ``myrepo/app:1.0.0`` becomes ``1.0.0`` and ``v1.2.0-beta.1`` becomes
    ``1.2.0-beta.1``. Strings without such a run only lose a leading ``v``.
    Empty input stays empty.
    """
    if not raw:
        return ""
    match = _VERSION_TAIL_PATTERN.search(raw)
    if match:
        return match.group(1)
    return raw[1:] if raw.startswith("v") else raw


def is_prerelease(raw: str) -> bool:
    """Return whether a tag carries one of the known prerelease markers."""
    return _PRERELEASE_PATTERN.search(normalize_version(raw)) is not None


def has_version_core(raw: str) -> bool:
    """Return whether a tag holds a ``<digits>.<digits>`` run to compare on."""
    return _VERSION_TAIL_PATTERN.search(raw) is not None


def _split_prerelease(normalized: str) -> tuple[str, str]:
    core, _, prerelease = normalized.partition("-")
    return core, prerelease


def _core_component(text: str) -> int:
    match = _LEADING_DIGITS.match(text)
    return int(match.group(0)) if match else 0


def parse_version(raw: str) -> ParsedVersion:
    """Split a version into integer core components and prerelease segments."""
    core, prerelease = _split_prerelease(normalize_version(raw))
    components = tuple(_core_component(part) for part in core.split(".")) if core else ()
    segments = tuple(prerelease.split(".")) if prerelease else ()
    return ParsedVersion(core=components, prerelease=segments)


def _compare_core(left: Sequence[int], right: Sequence[int]) -> int:
    for index in range(max(len(left), len(right))):
        a = left[index] if index < len(left) else 0
        b = right[index] if index < len(right) else 0
        if a != b:
            return 1 if a > b else -1
    return 0


def _compare_prerelease(left: Sequence[str], right: Sequence[str]) -> int:
    for index in range(max(len(left), len(right))):
        if index >= len(left):
            return -1
        if index >= len(right):
            return 1
        a, b = left[index], right[index]
        a_numeric, b_numeric = a.isdecimal(), b.isdecimal()
        if a_numeric and b_numeric:
            if int(a) != int(b):
                return 1 if int(a) > int(b) else -1
        elif a_numeric:
            return -1
        elif b_numeric:
            return 1
        elif a != b:
            return 1 if a > b else -1
    return 0


def compare_versions(left: str, right: str) -> int:
    """Order two version tags, returning -1, 0, or 1.

    Core components compare numerically with missing components read as 0.
    On equal cores a release outranks any prerelease; two prereleases
    compare segment by segment, numeric segments below textual ones.
    """
    a = parse_version(left)
    b = parse_version(right)
    result = _compare_core(a.core, b.core)
    if result:
        return result
    if not a.prerelease and not b.prerelease:
        return 0
    if not a.prerelease:
        return 1
    if not b.prerelease:
        return -1
    return _compare_prerelease(a.prerelease, b.prerelease)


version_key = cmp_to_key(compare_versions)


def sort_releases(releases: Sequence[T], *, newest_first: bool = True) -> list[T]:
    """Sort releases by their tag using :func:`compare_versions`."""
    return sorted(releases, key=lambda release: version_key(release.tag), reverse=newest_first)


def select_relevant_releases(
    releases: Sequence[T], current_version: str, max_count: Optional[int] = None
) -> list[T]:
    """Return the newest-first releases strictly newer than the current version.

    The walk stops at the first release whose normalized tag equals the
    normalized current version, or once ``max_count`` releases were taken.
    An unparseable current version never matches, so only the bound applies.
    """
    current = normalize_version(current_version)
    if max_count is not None and max_count <= 0:
        return []
    relevant: list[T] = []
    for release in releases:
        if current and normalize_version(release.tag) == current:
            break
        relevant.append(release)
        if max_count is not None and len(relevant) >= max_count:
            break
    return relevant


def filter_prereleases(releases: Sequence[T]) -> list[T]:
    """Drop releases tagged as prereleases."""
    return [release for release in releases if not is_prerelease(release.tag)]


def _group_key(tag: str, granularity: LagGranularity) -> Optional[tuple[int, ...]]:
    parsed = parse_version(tag)
    if not parsed.core or not any(char.isdigit() for char in normalize_version(tag)):
        return None
    depth = _GROUP_DEPTH[granularity]
    padded = parsed.core + (0,) * max(0, depth - len(parsed.core))
    return padded[:depth]


def apply_version_lag(
    releases: Sequence[T], lag: int, granularity: LagGranularity = "minor"
) -> list[T]:
    """Return the releases of the version group ``lag`` steps behind the newest.

    Groups are keyed by ``major``, ``major.minor``, or the full
    ``major.minor.patch`` and ordered by first appearance in the newest-first
    input. A lag of 0, or one beyond the number of groups, returns the input
    unchanged.
    """
    if granularity not in _GROUP_DEPTH:
        raise ValueError(
            f"Unknown lag granularity '{granularity}'. Supported values: "
            f"{', '.join(LAG_GRANULARITIES)}."
        )
    if lag <= 0:
        return list(releases)

    order: list[tuple[int, ...]] = []
    grouped: dict[tuple[int, ...], list[T]] = {}
    for release in releases:
        key = _group_key(release.tag, granularity)
        if key is None:
            continue
        if key not in grouped:
            order.append(key)
            grouped[key] = []
        grouped[key].append(release)

    if lag >= len(order):
        return list(releases)
    return grouped[order[lag]]
