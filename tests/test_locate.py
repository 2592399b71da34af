"""Tests for locating key lines and list items in raw documents."""

from __future__ import annotations

import pytest

from version_bumper.locate import (
    AmbiguousMatchError,
    BlockScope,
    KeyNotFoundError,
    block_end,
    find_block,
    locate_key,
    locate_path,
    read_value,
    split_lines,
)

DEPLOYMENT = """\
apiVersion: apps/v1
kind: Deployment
spec:
  template:
    spec:
      containers:
      - name: app
        image: myrepo/app:1.0.0 # pinned
      - name: sidecar
        image: "envoy:1.28.0"
"""

APPLICATIONS = """\
applications:
  - name: first
    repo: owner/first
    version: 1.0.0
    targets:
      - file: a.yaml
        path: version

  - name: 'second'
    repo: 'owner/second'
    version: v2.1.0
other: value
"""


def test_locate_path_resolves_sequence_indexes() -> None:
    located = locate_path(DEPLOYMENT, "spec.template.spec.containers.0.image")
    assert located.index == 7
    assert located.value == "myrepo/app:1.0.0"
    assert located.prefix == "        image: "
    assert located.suffix == " # pinned"
    assert located.newline == "\n"


def test_locate_path_keeps_quotes_outside_the_value() -> None:
    located = locate_path(DEPLOYMENT, "spec.template.spec.containers.1.image")
    assert located.value == "envoy:1.28.0"
    assert located.prefix.endswith('image: "')
    assert located.suffix == '"'


def test_locate_path_missing_key_raises_not_found() -> None:
    with pytest.raises(KeyNotFoundError):
        locate_path(DEPLOYMENT, "spec.template.spec.containers.2.image")


def test_locate_path_non_scalar_is_ambiguous() -> None:
    with pytest.raises(AmbiguousMatchError, match="scalar"):
        locate_path(DEPLOYMENT, "spec.template")


def test_locate_path_multiline_value_is_ambiguous() -> None:
    text = "image:\n  busybox:1.0\n"
    with pytest.raises(AmbiguousMatchError):
        locate_path(text, "image")


def test_locate_path_rejects_paths_ending_in_index() -> None:
    with pytest.raises(AmbiguousMatchError, match="list index"):
        locate_path("args:\n  - one\n", "args.0")


def test_locate_path_across_documents() -> None:
    text = "kind: Service\n---\nkind: Deployment\nimage: app:1.0\n"
    assert locate_path(text, "image").index == 3
    with pytest.raises(AmbiguousMatchError, match="documents"):
        locate_path(text, "kind")


def test_locate_path_falls_back_to_line_pattern_for_invalid_yaml() -> None:
    text = "image: app:1.0\n\tbroken: [\n"
    located = locate_path(text, "whatever.image")
    assert located.index == 0
    assert located.value == "app:1.0"


def test_fallback_with_duplicate_keys_is_ambiguous() -> None:
    text = "- image: a:1\n- image: b:2\n\tbroken: [\n"
    with pytest.raises(AmbiguousMatchError):
        locate_path(text, "image")


def test_structural_and_line_pattern_agree_on_simple_documents() -> None:
    text = "name: demo\nversion: 1.2.3 # current\n"
    assert locate_path(text, "version") == locate_key(text, "version")


def test_locate_key_does_not_match_longer_keys() -> None:
    text = "imagePullPolicy: Always\nimage: app:2\n"
    assert locate_key(text, "image").index == 1


def test_locate_key_within_block_scope() -> None:
    located = locate_key(APPLICATIONS, "version", scope=BlockScope("repo", "owner/second"))
    assert located.index == 10
    assert located.value == "v2.1.0"


def test_locate_key_scope_ignores_nested_keys() -> None:
    scope = BlockScope("repo", "owner/first")
    located = locate_key(APPLICATIONS, "version", scope=scope)
    assert (located.index, located.value) == (3, "1.0.0")
    with pytest.raises(KeyNotFoundError):
        locate_key(APPLICATIONS, "path", scope=scope)


def test_locate_key_unknown_scope_raises_not_found() -> None:
    with pytest.raises(KeyNotFoundError, match="No list item"):
        locate_key(APPLICATIONS, "version", scope=BlockScope("repo", "owner/missing"))


def test_find_block_boundaries() -> None:
    lines = split_lines(APPLICATIONS)
    first = find_block(lines, "repo", "owner/first")
    assert first is not None
    assert (first.start, first.end) == (1, 7)
    second = find_block(lines, "name", "second")
    assert second is not None
    assert (second.start, second.end) == (8, 11)
    assert second.child_indent == 4


def test_find_block_duplicate_matches_are_ambiguous() -> None:
    text = "- repo: a\n- repo: a\n"
    with pytest.raises(AmbiguousMatchError):
        find_block(split_lines(text), "repo", "a")


def test_block_end_runs_to_end_of_document() -> None:
    lines = split_lines("items:\n- a: 1\n  b: 2\n")
    assert block_end(lines, 1) == 3


def test_read_value() -> None:
    assert read_value(DEPLOYMENT, "kind") == "Deployment"
    assert read_value(DEPLOYMENT, "spec.replicas") is None
    assert read_value("version: 1.10\n", "version") == "1.10"


def test_block_end_stops_at_key_on_marker_indent() -> None:
    lines = split_lines("items:\n- a: 1\n  b: 2\nother: 3\n")
    assert block_end(lines, 1) == 3
