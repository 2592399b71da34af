"""Plan and apply the version update of one tracked application."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional, Sequence

import click

from .config import AppConfig, Target
from .locate import BlockScope, KeyNotFoundError, locate_key, read_value
from .pr_body import (
    DEFAULT_MAX_BODY_SIZE,
    AggregateRisk,
    assemble_pr_body,
    format_risk,
    risk_labels,
)
from .releases import Release, apply_release_filter
from .utils import ExecutionLog, format_date, slugify_branch
from .version_files import (
    CONFIG_MATCH_FIELD,
    CONFIG_VERSION_KEY,
    MutationPlan,
    apply_mutation_plans,
    plan_block_removal,
    plan_config_version_update,
    plan_target_update,
    read_document,
)
from .versions import (
    apply_version_lag,
    compare_versions,
    filter_prereleases,
    has_version_core,
    normalize_version,
    select_relevant_releases,
)

PlanKind = Literal["update", "remove", "noop"]


@dataclass(frozen=True)
class TargetUpdate:
    """One target that needs a new version."""

    target: Optional[Target]
    current_value: str
    current_version: str
    new_version: str


@dataclass
class UpdatePlan:
    """Everything decided for one application before any file is written."""

    app: AppConfig
    kind: PlanKind
    reason: str = ""
    latest: Optional[Release] = None
    current_version: str = ""
    latest_version: str = ""
    updates: list[TargetUpdate] = field(default_factory=list)
    releases: list[Release] = field(default_factory=list)
    mutations: list[MutationPlan] = field(default_factory=list)
    title: str = ""
    branch: str = ""


def _version_tail(value: str, app: AppConfig) -> str:
    if app.composite and ":" in value:
        return value.rpartition(":")[2]
    return value


def read_target_value(target: Target) -> str:
    """Return the raw value a target currently holds, or an empty string."""
    return read_value(read_document(target.file), target.path) or ""


def read_manual_version(app: AppConfig, config_path: Optional[Path]) -> str:
    """Read a manual application's version from the config text itself."""
    if config_path is not None and config_path.is_file():
        scope = BlockScope(field=CONFIG_MATCH_FIELD, value=app.repo)
        try:
            return locate_key(read_document(config_path), CONFIG_VERSION_KEY, scope=scope).value
        except KeyNotFoundError:
            pass
    return app.version


def _prefixed(current_raw: str, latest_version: str) -> str:
    if current_raw.startswith("v") and not latest_version.startswith("v"):
        return f"v{latest_version}"
    return latest_version


def candidate_releases(app: AppConfig, releases: Sequence[Release]) -> list[Release]:
    """Apply the prerelease, lag, and release filters in that order."""
    candidates = list(releases) if app.allow_prereleases else filter_prereleases(releases)
    if app.lag:
        candidates = apply_version_lag(candidates, app.lag, app.lag_granularity)
    if app.release_filter:
        candidates = apply_release_filter(candidates, app.release_filter)
    return candidates


def release_window(
    app: AppConfig, releases: Sequence[Release], latest: Release, current_raw: str
) -> list[Release]:
    """Releases from the selected one down to, excluding, the current version."""
    pool = list(releases) if app.allow_prereleases else filter_prereleases(releases)
    start = next((index for index, release in enumerate(pool) if release is latest), None)
    if start is None:
        pool, start = [latest], 0
    return select_relevant_releases(pool[start:], current_raw, app.max_releases)


def _plan_removal(
    app: AppConfig, config_path: Optional[Path], log: ExecutionLog, missing: Target
) -> UpdatePlan:
    name = app.display_name
    log.record(f'⚠️ Target file not found for "{name}".')
    if config_path is None or not config_path.is_file():
        log.record(f"⚠️ {config_path} not found. Skipping auto-removal.")
        raise click.ClickException(f"File not found: {missing.file}")
    log.record(f'🗑️ Application with repo "{app.repo}" seems to be deleted. Removing from config...')
    mutation = plan_block_removal(config_path, CONFIG_MATCH_FIELD, app.repo)
    if mutation is None:
        log.record(f'⚠️ "{app.repo}" is not listed in {config_path}.')
        return UpdatePlan(app=app, kind="noop", reason="application already removed")
    _, _, repo_name = app.repo.rpartition("/")
    return UpdatePlan(
        app=app,
        kind="remove",
        reason="target file missing",
        mutations=[mutation],
        title=f"chore: remove deleted application {name}",
        branch=slugify_branch(f"bot/remove-{repo_name or app.repo}"),
    )


def _plan_mutations(
    app: AppConfig, updates: Sequence[TargetUpdate], config_path: Optional[Path]
) -> list[MutationPlan]:
    contents: dict[Path, str] = {}
    mutations: list[MutationPlan] = []
    for update in updates:
        if update.target is None:
            if config_path is None:
                raise click.ClickException("Manual applications need a config file to update.")
            mutation = plan_config_version_update(
                config_path, app.repo, update.new_version, content=contents.get(config_path)
            )
        else:
            mutation = plan_target_update(
                update.target.file,
                update.target.path,
                update.new_version,
                composite=app.composite,
                expected=update.current_value,
                content=contents.get(update.target.file),
            )
        if mutation is not None:
            contents[mutation.path] = mutation.content
            mutations.append(mutation)
    return mutations


def plan_update(
    app: AppConfig,
    releases: Sequence[Release],
    log: ExecutionLog,
    *,
    config_path: Optional[Path] = None,
) -> UpdatePlan:
    """Decide which targets move to which version, without writing anything.

    ``releases`` is the newest-first list delivered by the release source. A
    missing first target file turns the plan into the removal of the
    application from ``config_path``.
    """
    name = app.display_name
    log.record(f'🪄 Processing application "{name}"')

    if app.type == "manual":
        current_raw = read_manual_version(app, config_path)
    else:
        if not app.targets:
            raise click.ClickException("No targets defined for application")
        try:
            current_raw = _version_tail(read_target_value(app.targets[0]), app)
        except FileNotFoundError:
            return _plan_removal(app, config_path, log, app.targets[0])

    candidates = candidate_releases(app, releases)
    if not candidates:
        log.record(f'✅ "{name}" is already up to date or no releases found.')
        return UpdatePlan(app=app, kind="noop", reason="no releases found")
    latest = candidates[0]
    latest_version = normalize_version(latest.tag)

    updates: list[TargetUpdate] = []
    if app.type == "manual":
        sources: list[tuple[Optional[Target], str]] = [(None, current_raw)]
    else:
        sources = [(target, read_target_value(target)) for target in app.targets]
    for target, value in sources:
        if target is not None and app.composite and ":" not in value:
            log.record(
                f"⚠️ {target.file} -> {target.path} holds '{value}' without a tag, "
                "leaving it as is."
            )
            continue
        raw = value if target is None else _version_tail(value, app)
        current_version = normalize_version(raw)
        if not latest_version or not current_version or not has_version_core(raw):
            log.record(f"⚠️ Cannot compare '{raw}' with '{latest.tag}', leaving it as is.")
            continue
        if compare_versions(latest_version, current_version) <= 0:
            continue
        updates.append(
            TargetUpdate(
                target=target,
                current_value=value,
                current_version=raw,
                new_version=_prefixed(raw, latest_version),
            )
        )

    if not updates:
        log.record(f'✅ "{name}" is already up to date ({latest.tag})')
        return UpdatePlan(app=app, kind="noop", reason="up to date", latest=latest)

    log.record(f"💡 Latest version is {latest.tag} ({latest_version})")
    current_version = normalize_version(updates[0].current_version)
    window = release_window(app, releases, latest, updates[0].current_version)
    _, _, repo_name = app.repo.rpartition("/")
    return UpdatePlan(
        app=app,
        kind="update",
        latest=latest,
        current_version=current_version,
        latest_version=latest_version,
        updates=updates,
        releases=window,
        mutations=_plan_mutations(app, updates, config_path),
        title=f"chore: update {name} from {current_version} to {latest_version}",
        branch=slugify_branch(f"bot/update-{repo_name or app.repo}-{latest_version}"),
    )


def report_window(plan: UpdatePlan, assessment: Optional[AggregateRisk], log: ExecutionLog) -> None:
    """Record the releases (or their risk verdicts) that the update brings in."""
    if assessment is not None:
        verdict = "✅ Worry-free" if assessment.overall_worry_free else "⚠️ Proceed with caution"
        log.record(f"📊 AI Overall Risk: [{format_risk(assessment.overall_risk)}] {verdict}")
        for item in assessment.releases:
            log.record(
                f"   - {item.release.tag} ({format_date(item.release.published_at)}): "
                f"[{format_risk(item.risk)}] {item.summary}"
            )
            if item.risk != "None" and item.recommendations:
                log.record(f"     💡 Recommendation: {item.recommendations}")
        return
    log.record(f"📦 Found {len(plan.releases)} release(s) to apply.")
    for release in plan.releases:
        log.record(f"   - {release.tag} ({format_date(release.published_at)})")


def apply_plan(
    plan: UpdatePlan,
    log: ExecutionLog,
    *,
    assessment: Optional[AggregateRisk] = None,
    max_body_size: int = DEFAULT_MAX_BODY_SIZE,
) -> str:
    """Write the planned edits (unless dry-run) and return the pull request body."""
    name = plan.app.display_name
    if plan.kind == "noop":
        return ""
    if plan.kind == "remove":
        apply_mutation_plans(plan.mutations, log)
        return (
            f"The application **{name}** was tracked in the configuration but its target "
            "files are missing. This PR removes it from the tracking configuration."
        )
    log.record(
        f"🚀 Updating {name} ({plan.app.repo}): {len(plan.updates)} target(s) need updates"
    )
    report_window(plan, assessment, log)
    apply_mutation_plans(plan.mutations, log)
    return assemble_pr_body(name, assessment, plan.releases, log.text(), max_body_size)


class VersionBumper:
    """High-level helper that runs one application through plan and apply."""

    def __init__(self, *, config_path: Path | str | None = None, dry_run: bool = False) -> None:
        self.config_path = Path(config_path) if config_path is not None else None
        self.log = ExecutionLog(dry_run=dry_run)

    def plan(self, app: AppConfig, releases: Sequence[Release]) -> UpdatePlan:
        return plan_update(app, releases, self.log, config_path=self.config_path)

    def apply(
        self,
        plan: UpdatePlan,
        *,
        assessment: Optional[AggregateRisk] = None,
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
    ) -> str:
        return apply_plan(plan, self.log, assessment=assessment, max_body_size=max_body_size)

    def labels(self, assessment: Optional[AggregateRisk]) -> list[tuple[str, str]]:
        return risk_labels(assessment)
