"""Locate key/value lines inside YAML-like documents without rewriting them.

The document is handled as a list of lines. Dotted paths are resolved with
PyYAML's composer, which keeps source positions, and every hit is verified
against a line-anchored ``key: value`` pattern before anyone may edit it.
When the document does not parse, the final key of the path is matched
directly with the same pattern.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence

import click
import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

_KEY_LINE_TEMPLATE = (
    r"^(?P<lead>[ \t]*(?:-[ \t]+)?){key}[ \t]*:(?P<gap>[ \t]*)"
    r"(?:(?P<quote>[\"'])(?P<quoted>[^\"'\r\n]*)(?P=quote)|(?P<plain>[^#\r\n]*?))"
    r"(?P<suffix>[ \t]*(?:#.*)?)$"
)
_LIST_ITEM_PATTERN = re.compile(r"^(?P<indent>[ \t]*)(?P<marker>-)(?:[ \t]+|$)")


class DocumentEditError(click.ClickException):
    """Base class for failures while locating or editing a document."""


class KeyNotFoundError(DocumentEditError):
    """The requested key or block does not exist in the document."""


class AmbiguousMatchError(DocumentEditError):
    """More than one line could be the target, or the target is not editable."""


@dataclass(frozen=True)
class BlockScope:
    """Restricts a lookup to the list item whose ``field`` equals ``value``."""

    field: str
    value: str


@dataclass(frozen=True)
class KeyLine:
    """A located ``key: value`` line split around its value span."""

    index: int
    key: str
    prefix: str
    value: str
    suffix: str
    newline: str

    def render(self, value: str) -> str:
        return f"{self.prefix}{value}{self.suffix}{self.newline}"


@dataclass(frozen=True)
class Block:
    """Half-open line range ``[start, end)`` of one list item."""

    start: int
    end: int
    indent: int
    child_indent: int


def split_lines(text: str) -> list[str]:
    return text.splitlines(keepends=True)


def _strip_newline(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body) :]


def indentation(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def is_structural(line: str) -> bool:
    """Return whether the line carries content, i.e. is neither blank nor a comment."""
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def is_list_item(line: str) -> bool:
    return _LIST_ITEM_PATTERN.match(line) is not None


def key_line_pattern(key: str) -> re.Pattern[str]:
    return re.compile(_KEY_LINE_TEMPLATE.format(key=re.escape(key)))


def match_key_line(lines: Sequence[str], index: int, key: str) -> Optional[KeyLine]:
    """Split ``lines[index]`` around the value of ``key`` if it holds a scalar."""
    body, newline = _strip_newline(lines[index])
    match = key_line_pattern(key).match(body)
    if match is None:
        return None
    quote = match.group("quote") or ""
    if quote:
        value = match.group("quoted")
    else:
        value = match.group("plain")
        if not value:
            # `key:` alone opens a nested mapping or sequence.
            return None
    prefix = f"{match.group('lead')}{body[match.end('lead') : match.start('gap')]}"
    prefix += f"{match.group('gap')}{quote}"
    return KeyLine(
        index=index,
        key=key,
        prefix=prefix,
        value=value,
        suffix=f"{quote}{match.group('suffix')}",
        newline=newline,
    )


def block_end(lines: Sequence[str], start: int) -> int:
    """Return the exclusive end of the list item opening at ``start``.

    The item ends at the next line indented at or above the marker's
    indentation, which covers the next sibling item and any dedent. Trailing
    blank lines stay outside the block.
    """
    indent = indentation(lines[start])
    end = len(lines)
    for index in range(start + 1, len(lines)):
        line = lines[index]
        if not is_structural(line):
            continue
        if indentation(line) <= indent:
            end = index
            break
    while end > start + 1 and not lines[end - 1].strip():
        end -= 1
    return end


def _enclosing_item(lines: Sequence[str], index: int) -> Optional[int]:
    """Walk upward from ``index`` to the list marker that owns the line."""
    if is_list_item(lines[index]):
        return index
    threshold = indentation(lines[index])
    for candidate in range(index - 1, -1, -1):
        line = lines[candidate]
        if not is_structural(line):
            continue
        line_indent = indentation(line)
        if line_indent >= threshold:
            continue
        if is_list_item(line):
            return candidate
        if line_indent == 0:
            return None
        # Parent mapping key inside the item; keep climbing.
        threshold = line_indent
    return None


def _field_pattern(field: str, value: str) -> re.Pattern[str]:
    return re.compile(
        rf"^[ \t]*(?:-[ \t]+)?{re.escape(field)}[ \t]*:[ \t]*(?P<q>[\"']?){re.escape(value)}(?P=q)"
        r"[ \t]*(?:#.*)?$"
    )


def find_block(lines: Sequence[str], field: str, value: str) -> Optional[Block]:
    """Find the list item containing ``field: value`` (quoted or unquoted)."""
    pattern = _field_pattern(field, value)
    hits = [index for index, line in enumerate(lines) if pattern.match(_strip_newline(line)[0])]
    if not hits:
        return None
    if len(hits) > 1:
        raise AmbiguousMatchError(
            f"'{field}: {value}' appears on lines {', '.join(str(hit + 1) for hit in hits)}."
        )
    start = _enclosing_item(lines, hits[0])
    if start is None:
        return None
    marker = _LIST_ITEM_PATTERN.match(lines[start])
    assert marker is not None
    content = lines[start][marker.end() :]
    child_indent = marker.end() if content.strip() else indentation(lines[start]) + 2
    return Block(
        start=start,
        end=block_end(lines, start),
        indent=indentation(lines[start]),
        child_indent=child_indent,
    )


def _single(candidates: list[KeyLine], key: str, where: str) -> KeyLine:
    if not candidates:
        raise KeyNotFoundError(f'Could not find key "{key}" in {where}.')
    if len(candidates) > 1:
        listed = ", ".join(str(candidate.index + 1) for candidate in candidates)
        raise AmbiguousMatchError(f'Key "{key}" matches several lines in {where}: {listed}.')
    return candidates[0]


def locate_key(text: str, key: str, *, scope: Optional[BlockScope] = None) -> KeyLine:
    """Find the single ``key: value`` line, optionally inside one list item."""
    lines = split_lines(text)
    if scope is None:
        candidates = [
            hit
            for hit in (match_key_line(lines, index, key) for index in range(len(lines)))
            if hit is not None
        ]
        return _single(candidates, key, "the document")

    block = find_block(lines, scope.field, scope.value)
    if block is None:
        raise KeyNotFoundError(f"No list item with '{scope.field}: {scope.value}' found.")
    candidates = []
    for index in range(block.start, block.end):
        if index != block.start and indentation(lines[index]) != block.child_indent:
            continue
        hit = match_key_line(lines, index, key)
        if hit is not None:
            candidates.append(hit)
    return _single(candidates, key, f"the item with '{scope.field}: {scope.value}'")


def _walk(node: Optional[Node], parts: Sequence[str]) -> Optional[tuple[Node, Node]]:
    """Resolve ``parts`` below ``node`` and return ``(key_node, value_node)``."""
    key_node: Optional[Node] = None
    for part in parts:
        if isinstance(node, MappingNode):
            for candidate_key, candidate_value in node.value:
                if isinstance(candidate_key, ScalarNode) and candidate_key.value == part:
                    key_node, node = candidate_key, candidate_value
                    break
            else:
                return None
        elif isinstance(node, SequenceNode):
            if not part.isdecimal() or int(part) >= len(node.value):
                return None
            key_node, node = None, node.value[int(part)]
        else:
            return None
    if key_node is None or node is None:
        return None
    return key_node, node


def _compose_documents(text: str) -> Optional[list[Node]]:
    try:
        return [document for document in yaml.compose_all(text) if document is not None]
    except yaml.YAMLError:
        return None


def locate_path(text: str, path: str) -> KeyLine:
    """Find the line holding the scalar at dotted ``path``.

    Numeric path parts index into sequences. When the document is valid YAML
    the composed tree decides the line; otherwise the last key of the path
    must match exactly one line of the document.
    """
    parts = [part for part in path.split(".") if part]
    if not parts:
        raise KeyNotFoundError("Empty key path.")
    key = parts[-1]
    if key.isdecimal():
        raise AmbiguousMatchError(f"Path '{path}' must end in a mapping key, not a list index.")

    documents = _compose_documents(text)
    if documents is None:
        return locate_key(text, key)

    hits = [hit for hit in (_walk(document, parts) for document in documents) if hit]
    if not hits:
        raise KeyNotFoundError(f'Could not find key "{path}" in the document.')
    if len(hits) > 1:
        raise AmbiguousMatchError(f"Path '{path}' resolves in {len(hits)} YAML documents.")

    key_node, value_node = hits[0]
    if not isinstance(value_node, ScalarNode):
        raise AmbiguousMatchError(f"Path '{path}' does not hold a scalar value.")
    line_index = key_node.start_mark.line
    if value_node.start_mark.line != line_index or value_node.end_mark.line != line_index:
        raise AmbiguousMatchError(f"Path '{path}' holds a value spanning several lines.")
    located = match_key_line(split_lines(text), line_index, key)
    if located is None or located.value != value_node.value:
        raise AmbiguousMatchError(
            f"Path '{path}' resolves to line {line_index + 1}, "
            "which is not a plain 'key: value' line."
        )
    return located


def read_value(text: str, path: str) -> Optional[str]:
    """Return the current scalar at ``path``, or None if it does not exist."""
    try:
        return locate_path(text, path).value
    except KeyNotFoundError:
        return None
