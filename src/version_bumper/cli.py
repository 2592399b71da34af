"""Command-line interface for version-bumper."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as metadata_version
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, cast

import click
from rich.table import Table

from . import __version__ as package_version
from .api import UpdatePlan, VersionBumper
from .config import DEFAULT_CONFIG_FILE, find_application, load_config
from .locate import read_value
from .pr_body import (
    DEFAULT_MAX_BODY_SIZE,
    AggregateRisk,
    aggregate_risks,
    parse_assessment,
    skipped_assessment,
)
from .releases import Release, load_releases
from .utils import (
    ExecutionLog,
    abort_on_user_interrupt,
    configure_logging,
    emit_output,
    extract_excerpt,
    format_bold,
    format_date,
    log_debug,
    log_info,
    log_success,
    log_warning,
    render_to_text,
)
from .version_files import (
    apply_mutation_plans,
    plan_block_removal,
    plan_target_update,
    read_document,
)
from .versions import (
    LAG_GRANULARITIES,
    LagGranularity,
    apply_version_lag,
    compare_versions,
    is_prerelease,
    normalize_version,
    select_relevant_releases,
)

__all__ = ["cli", "main", "CLIContext"]

VERSION_FLAGS = {"--version", "-V"}


def _resolve_cli_version() -> str:
    try:
        return metadata_version("version-bumper")
    except PackageNotFoundError:
        return package_version


@dataclass
class CLIContext:
    """Shared state for all commands."""

    debug: bool = False


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Bump tracked versions in configuration files from upstream releases."""

    configure_logging(debug)
    ctx.obj = CLIContext(debug=debug)


cli = click.version_option(version=_resolve_cli_version())(cli)


@cli.command("normalize")
@click.argument("raw")
def normalize_command(raw: str) -> None:
    """Print the normalized form of a version tag."""
    normalized = normalize_version(raw)
    suffix = " (prerelease)" if is_prerelease(raw) else ""
    emit_output(f"{normalized}{suffix}")


@cli.command("compare")
@click.argument("left")
@click.argument("right")
def compare_command(left: str, right: str) -> None:
    """Print -1, 0, or 1 depending on how LEFT orders against RIGHT."""
    emit_output(str(compare_versions(left, right)))


def _releases_table(releases: Sequence[Release]) -> Table:
    table = Table(title="Release Window")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Tag", style="cyan", no_wrap=True)
    table.add_column("Published")
    table.add_column("Summary")
    for index, release in enumerate(releases, start=1):
        table.add_row(
            str(index),
            release.tag,
            format_date(release.published_at),
            extract_excerpt(release.body or release.name or ""),
        )
    return table


@cli.command("window")
@click.argument("releases_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--current", required=True, help="Version currently deployed.")
@click.option("--max", "max_count", type=int, default=None, help="Maximum number of releases.")
@click.option("--lag", type=click.IntRange(min=0), default=0, help="Version groups to stay behind.")
@click.option(
    "--granularity",
    type=click.Choice(LAG_GRANULARITIES),
    default="minor",
    show_default=True,
    help="Grouping used by --lag.",
)
def window_command(
    releases_file: Path, current: str, max_count: Optional[int], lag: int, granularity: str
) -> None:
    """Show the releases newer than --current from a saved GitHub response."""
    releases = load_releases(releases_file)
    if lag:
        releases = apply_version_lag(releases, lag, cast(LagGranularity, granularity))
    selected = select_relevant_releases(releases, current, max_count)
    if not selected:
        log_info(f"no releases newer than {format_bold(current)}.")
        return
    emit_output(render_to_text(_releases_table(selected)), newline=False)


@cli.command("get")
@click.argument("file", type=click.Path(path_type=Path, dir_okay=False))
@click.argument("key_path")
def get_command(file: Path, key_path: str) -> None:
    """Print the scalar at KEY_PATH in FILE."""
    value = read_value(read_document(file), key_path)
    if value is None:
        raise click.ClickException(f'Could not find key "{key_path}" in {file}')
    emit_output(value)


@cli.command("set")
@click.argument("file", type=click.Path(path_type=Path, dir_okay=False))
@click.argument("key_path")
@click.argument("value")
@click.option("--composite", is_flag=True, help="Only replace the tag after the last colon.")
@click.option("--dry-run", is_flag=True, help="Report the change without writing it.")
def set_command(file: Path, key_path: str, value: str, composite: bool, dry_run: bool) -> None:
    """Rewrite the scalar at KEY_PATH in FILE, preserving everything else."""
    plan = plan_target_update(file, key_path, value, composite=composite)
    if plan is None:
        log_info(f"{file} -> {key_path} already holds {format_bold(value)}.")
        return
    apply_mutation_plans([plan], ExecutionLog(dry_run=dry_run))
    if not dry_run:
        log_success(f"updated {file}.")


@cli.command("remove")
@click.argument("file", type=click.Path(path_type=Path, dir_okay=False))
@click.argument("value")
@click.option("--field", default="repo", show_default=True, help="Field identifying the item.")
@click.option("--dry-run", is_flag=True, help="Report the change without writing it.")
def remove_command(file: Path, value: str, field: str, dry_run: bool) -> None:
    """Remove the list item whose FIELD equals VALUE from FILE."""
    plan = plan_block_removal(file, field, value)
    if plan is None:
        log_warning(f"no item with {field}: {value} in {file}; nothing to remove.")
        return
    apply_mutation_plans([plan], ExecutionLog(dry_run=dry_run))
    if not dry_run:
        log_success(f"removed {field}: {value} from {file}.")


def _load_assessment(path: Path, releases: Sequence[Release]) -> Optional[AggregateRisk]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Cannot parse JSON in {path}: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise click.ClickException(f"Expected a list of assessments in {path}.")
    by_tag: dict[str, Mapping[str, Any]] = {
        str(item.get("tag_name")): item for item in payload if isinstance(item, Mapping)
    }
    assessments = []
    for release in releases:
        item = by_tag.get(release.tag)
        if item is None:
            log_debug(f"no assessment for {release.tag}.")
            assessments.append(skipped_assessment(release))
        else:
            assessments.append(parse_assessment(release, item))
    return aggregate_risks(assessments)


def _echo_plan(plan: UpdatePlan) -> None:
    emit_output(f"title: {plan.title}")
    emit_output(f"branch: {plan.branch}")


@cli.command("run")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Tracked applications configuration.",
)
@click.option("--app", "repo", required=True, help="Repo of the application to update.")
@click.option(
    "--releases",
    "releases_file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    required=True,
    help="Saved GitHub releases or Docker Hub tags response.",
)
@click.option(
    "--assessment",
    "assessment_file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Per-release risk assessments as JSON.",
)
@click.option("--dry-run", is_flag=True, help="Report the changes without writing them.")
@click.option(
    "--max-body-size",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_BODY_SIZE,
    show_default=True,
    help="Upper bound for the pull request body length.",
)
@click.option(
    "--body-out",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Write the pull request body to this file instead of stdout.",
)
def run_command(
    config_path: Path,
    repo: str,
    releases_file: Path,
    assessment_file: Optional[Path],
    dry_run: bool,
    max_body_size: int,
    body_out: Optional[Path],
) -> None:
    """Update one tracked application from a saved release listing."""
    try:
        app = find_application(load_config(config_path), repo)
    except (ValueError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc
    releases = load_releases(releases_file, source=app.source, repo=app.repo)

    bumper = VersionBumper(config_path=config_path, dry_run=dry_run)
    plan = bumper.plan(app, releases)
    if plan.kind == "noop":
        return
    assessment = None
    if plan.kind == "update":
        if assessment_file is not None and plan.releases:
            assessment = _load_assessment(assessment_file, plan.releases)
        elif plan.releases:
            bumper.log.record("⚠️ AI analysis skipped: no assessment provided.")
    body = bumper.apply(plan, assessment=assessment, max_body_size=max_body_size)

    _echo_plan(plan)
    for name, color in bumper.labels(assessment):
        emit_output(f"label: {name} #{color}")
    if body_out is not None:
        body_out.write_text(body, encoding="utf-8")
        log_success(f"wrote pull request body to {body_out}.")
    else:
        emit_output(body)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for console_scripts."""
    args = list(argv) if argv is not None else list(sys.argv[1:])

    if any(flag in args for flag in VERSION_FLAGS):
        click.echo(_resolve_cli_version())
        return 0

    try:
        cli.main(args=args, prog_name="version-bumper", standalone_mode=False)
    except FileNotFoundError as exc:
        click.ClickException(str(exc)).show(file=sys.stderr)
        return 1
    except click.ClickException as exc:
        exc.show(file=sys.stderr)
        exit_code = getattr(exc, "exit_code", 1)
        return exit_code if isinstance(exit_code, int) else 1
    except KeyboardInterrupt as exc:
        try:
            abort_on_user_interrupt(exc)
        except click.exceptions.Exit as exit_exc:
            exit_code = getattr(exit_exc, "exit_code", 130)
            return exit_code if isinstance(exit_code, int) else 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
