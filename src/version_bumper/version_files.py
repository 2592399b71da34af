"""Helpers for planning and applying in-place version edits to config files."""

from __future__ import annotations

import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .locate import (
    BlockScope,
    KeyLine,
    find_block,
    locate_key,
    locate_path,
    split_lines,
)
from .utils import ExecutionLog

CONFIG_VERSION_KEY = "version"
CONFIG_MATCH_FIELD = "repo"


@dataclass(frozen=True)
class ValueEdit:
    """Result of rewriting one scalar inside a document."""

    line: int
    old_value: str
    new_value: str
    drifted: bool
    content: str


@dataclass(frozen=True)
class BlockRemoval:
    """Result of removing one list item from a document."""

    found: bool
    start: int
    end: int
    content: str


@dataclass(frozen=True)
class MutationPlan:
    """A fully computed file rewrite that has not been written yet."""

    path: Path
    key_path: str
    old_value: Optional[str]
    new_value: Optional[str]
    content: str
    drifted: bool = False

    def describe(self) -> str:
        if self.new_value is None:
            return f"🗑️  Remove {self.key_path} from {self.path}"
        return f"✍️  Update {self.path} -> {self.key_path}: {self.old_value} -> {self.new_value}"


def compose_value(current: str, new_version: str, *, composite: bool) -> str:
    """Build the replacement value.

    Composite values such as ``registry:5000/app:1.0`` keep everything up to
    the last colon and only swap the tag after it.
    """
    if composite and ":" in current:
        prefix, _, _ = current.rpartition(":")
        return f"{prefix}:{new_version}"
    return new_version


def _rewrite_line(text: str, located: KeyLine, replacement: str) -> str:
    lines = split_lines(text)
    lines[located.index] = located.render(replacement)
    return "".join(lines)


def _replace_expected(
    text: str, located: KeyLine, expected: str, new_version: str, *, composite: bool
) -> ValueEdit:
    replacement = compose_value(expected, new_version, composite=composite)
    return ValueEdit(
        line=located.index,
        old_value=expected,
        new_value=replacement,
        drifted=False,
        content=_rewrite_line(text, located, replacement),
    )


def _replace_current(
    text: str, located: KeyLine, new_version: str, *, composite: bool, drifted: bool
) -> ValueEdit:
    # Whatever non-comment value follows the key right now is replaced; the
    # composite prefix is taken from that value, not from the stale one.
    replacement = compose_value(located.value, new_version, composite=composite)
    return ValueEdit(
        line=located.index,
        old_value=located.value,
        new_value=replacement,
        drifted=drifted,
        content=_rewrite_line(text, located, replacement),
    )


def set_value(
    text: str,
    located: KeyLine,
    new_version: str,
    *,
    expected: Optional[str] = None,
    composite: bool = False,
) -> ValueEdit:
    """Replace the value span of a located line, keeping everything around it.

    With ``expected`` matching the current value the edit is exact. When it
    no longer matches, the current value is replaced instead and the edit is
    flagged as drifted. Without ``expected`` the current value is replaced.
    """
    if expected is None:
        return _replace_current(text, located, new_version, composite=composite, drifted=False)
    if located.value == expected:
        return _replace_expected(text, located, expected, new_version, composite=composite)
    return _replace_current(text, located, new_version, composite=composite, drifted=True)


def set_path_value(
    text: str,
    key_path: str,
    new_version: str,
    *,
    expected: Optional[str] = None,
    composite: bool = False,
) -> ValueEdit:
    """Rewrite the scalar at a dotted key path."""
    return set_value(
        text,
        locate_path(text, key_path),
        new_version,
        expected=expected,
        composite=composite,
    )


def set_scoped_value(
    text: str,
    scope: BlockScope,
    key: str,
    new_version: str,
    *,
    expected: Optional[str] = None,
) -> ValueEdit:
    """Rewrite ``key`` inside the list item selected by ``scope``."""
    return set_value(text, locate_key(text, key, scope=scope), new_version, expected=expected)


def update_config_version(text: str, repo: str, new_version: str) -> ValueEdit:
    """Set the ``version`` of the tracked application whose ``repo`` matches."""
    return set_scoped_value(
        text, BlockScope(field=CONFIG_MATCH_FIELD, value=repo), CONFIG_VERSION_KEY, new_version
    )


def _collapse_blank_run(lines: list[str], seam: int) -> list[str]:
    """Shrink three or more blank lines around ``seam`` down to one."""
    first = seam
    while first > 0 and not lines[first - 1].strip():
        first -= 1
    last = seam
    while last < len(lines) and not lines[last].strip():
        last += 1
    if last - first >= 3:
        return lines[: first + 1] + lines[last:]
    return lines


def remove_block(text: str, field: str, value: str) -> BlockRemoval:
    """Delete the list item whose ``field`` equals ``value``.

    A missing item is reported through ``found`` and leaves the text as is.
    """
    lines = split_lines(text)
    block = find_block(lines, field, value)
    if block is None:
        return BlockRemoval(found=False, start=-1, end=-1, content=text)
    remaining = _collapse_blank_run(lines[: block.start] + lines[block.end :], block.start)
    return BlockRemoval(found=True, start=block.start, end=block.end, content="".join(remaining))


def read_document(path: Path) -> str:
    """Read a whole document; a missing file raises FileNotFoundError."""
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def write_document(path: Path, content: str) -> None:
    """Replace a document in one step through a sibling temporary file.

    The permission bits of an existing document carry over to the new one.
    """
    handle, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    temp_path = Path(temp_name)
    try:
        with os.fdopen(handle, "w", encoding="utf-8", newline="") as stream:
            stream.write(content)
        if path.exists():
            os.chmod(temp_path, stat.S_IMODE(path.stat().st_mode))
        temp_path.replace(path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def plan_target_update(
    path: Path,
    key_path: str,
    new_version: str,
    *,
    composite: bool = False,
    expected: Optional[str] = None,
    content: Optional[str] = None,
) -> Optional[MutationPlan]:
    """Plan the rewrite of one target; None when the value is already current.

    Pass ``content`` to build on an earlier, not yet written plan for the same file.
    """
    if content is None:
        content = read_document(path)
    edit = set_path_value(content, key_path, new_version, expected=expected, composite=composite)
    if edit.content == content:
        return None
    return MutationPlan(
        path=path,
        key_path=key_path,
        old_value=edit.old_value,
        new_value=edit.new_value,
        content=edit.content,
        drifted=edit.drifted,
    )


def plan_config_version_update(
    config_path: Path, repo: str, new_version: str, *, content: Optional[str] = None
) -> Optional[MutationPlan]:
    """Plan the ``version`` bump of a manually tracked application."""
    if content is None:
        content = read_document(config_path)
    edit = update_config_version(content, repo, new_version)
    if edit.content == content:
        return None
    return MutationPlan(
        path=config_path,
        key_path=f"{repo}.{CONFIG_VERSION_KEY}",
        old_value=edit.old_value,
        new_value=edit.new_value,
        content=edit.content,
    )


def plan_block_removal(path: Path, field: str, value: str) -> Optional[MutationPlan]:
    """Plan removing the list item with ``field: value``; None if absent."""
    content = read_document(path)
    removal = remove_block(content, field, value)
    if not removal.found:
        return None
    return MutationPlan(
        path=path,
        key_path=f"{field}={value}",
        old_value=value,
        new_value=None,
        content=removal.content,
    )


def apply_mutation_plans(plans: Sequence[MutationPlan], log: ExecutionLog) -> None:
    """Record every planned rewrite and write it unless the log is a dry run."""

    for plan in plans:
        log.record(plan.describe())
        if plan.drifted:
            log.record(f"⚠️  {plan.path} -> {plan.key_path} changed since it was read.")
        if log.dry_run:
            continue
        write_document(plan.path, plan.content)
