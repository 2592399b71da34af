"""Tests for risk aggregation and size-bounded pull request bodies."""

from __future__ import annotations

from datetime import datetime, timezone

from version_bumper.pr_body import (
    TRUNCATION_MARKER,
    AggregateRisk,
    RiskAssessment,
    aggregate_risks,
    assemble_pr_body,
    parse_assessment,
    risk_labels,
    skipped_assessment,
)
from version_bumper.releases import Release

RELEASES = [
    Release(
        tag="v1.2.0",
        url="https://github.com/owner/app/releases/tag/v1.2.0",
        published_at=datetime(2024, 5, 2, tzinfo=timezone.utc),
    ),
    Release(
        tag="v1.1.0",
        url="https://github.com/owner/app/releases/tag/v1.1.0",
        published_at=datetime(2024, 4, 1, tzinfo=timezone.utc),
    ),
]


def _assessment() -> AggregateRisk:
    aggregate = aggregate_risks(
        [
            RiskAssessment(
                release=RELEASES[0],
                summary="Adds a new dashboard.",
                worry_free=True,
                risk="Low",
                recommendations="Review the new defaults.",
            ),
            RiskAssessment(
                release=RELEASES[1],
                summary="Fixes a crash on startup.",
                worry_free=True,
                risk="None",
            ),
        ]
    )
    assert aggregate is not None
    return aggregate


def test_parse_assessment_reads_model_response() -> None:
    item = parse_assessment(
        RELEASES[0],
        '{"summary": "Small fix.", "worryFree": true, "risk": "medium", "recommendations": ""}',
    )
    assert item.summary == "Small fix."
    assert item.worry_free
    assert item.risk == "Medium"


def test_parse_assessment_failure_is_high_risk() -> None:
    item = parse_assessment(RELEASES[0], "not json")
    assert item.summary == "Failed to analyze release."
    assert item.risk == "High"
    assert not item.worry_free


def test_aggregate_risks_takes_maximum_and_requires_all_worry_free() -> None:
    aggregate = aggregate_risks(
        [
            RiskAssessment(RELEASES[0], "a", True, "Low"),
            RiskAssessment(RELEASES[1], "b", False, "Medium"),
        ]
    )
    assert aggregate is not None
    assert aggregate.overall_risk == "Medium"
    assert not aggregate.overall_worry_free
    assert aggregate_risks([]) is None


def test_risk_labels() -> None:
    assert risk_labels(None) == []
    assert risk_labels(_assessment()) == [("Risk: Low", "fbca04"), ("Worry-free", "c2e0c6")]
    skipped = aggregate_risks([skipped_assessment(RELEASES[0])])
    assert risk_labels(skipped) == [("Risk: High", "d93f0b")]


def test_body_with_assessment_includes_every_section() -> None:
    body = assemble_pr_body("app", _assessment(), RELEASES, "line one\nline two")
    assert body.startswith("Automated version update for **app**.\n\n### 🤖 AI Risk Assessment\n")
    assert "- **Overall Risk Level**: Low 🟢\n" in body
    assert "- **Overall Worry Free**: Yes ✅\n" in body
    assert (
        "- **[v1.2.0](https://github.com/owner/app/releases/tag/v1.2.0)** (2024-05-02) "
        "(Risk: Low 🟢, Worry-free: Yes)\n  Adds a new dashboard.\n"
        "  > **💡 Recommendation:** Review the new defaults.\n"
    ) in body
    assert "  Fixes a crash on startup.\n" in body
    assert "<summary>📄 Full Execution Logs</summary>" in body
    assert "```text\nline one\nline two\n```" in body


def test_body_without_assessment_lists_releases() -> None:
    body = assemble_pr_body("app", None, RELEASES, "log")
    assert "### 📦 Included Releases\n" in body
    assert (
        "- **[v1.1.0](https://github.com/owner/app/releases/tag/v1.1.0)** (2024-04-01)\n" in body
    )
    assert "AI Risk Assessment" not in body


def test_body_drops_execution_log_first() -> None:
    full = assemble_pr_body("app", _assessment(), RELEASES, "x" * 500)
    limit = full.index("\n---\n<details>") + 10
    body = assemble_pr_body("app", _assessment(), RELEASES, "x" * 500, limit)
    assert len(full) > limit
    assert body == full[: full.index("\n---\n<details>")]
    assert "Full Execution Logs" not in body
    assert "Fixes a crash on startup." in body
    assert "Adds a new dashboard." in body


def test_body_drops_summaries_from_the_oldest_release() -> None:
    log = "x" * 500
    full = assemble_pr_body("app", _assessment(), RELEASES, log)
    no_log_size = full.index("\n---\n<details>")
    body = assemble_pr_body("app", _assessment(), RELEASES, log, no_log_size - 5)
    assert "Fixes a crash on startup." not in body
    assert "Adds a new dashboard." in body
    assert "[v1.1.0]" in body
    assert len(body) <= no_log_size - 5


def test_body_truncates_as_last_resort() -> None:
    body = assemble_pr_body("app", _assessment(), RELEASES, "log", 150)
    assert len(body) <= 150
    assert body.endswith(TRUNCATION_MARKER)
    assert body.startswith("Automated version update for **app**.")


def test_body_never_exceeds_tiny_limits() -> None:
    for limit in (0, 10, 49, 50, 51):
        assert len(assemble_pr_body("app", _assessment(), RELEASES, "log", limit)) <= limit


def test_body_shrinks_monotonically() -> None:
    sizes = [
        len(assemble_pr_body("app", _assessment(), RELEASES, "y" * 300, limit))
        for limit in range(1200, 0, -37)
    ]
    assert sizes == sorted(sizes, reverse=True)


def test_body_is_deterministic() -> None:
    first = assemble_pr_body("app", _assessment(), RELEASES, "log", 400)
    second = assemble_pr_body("app", _assessment(), RELEASES, "log", 400)
    assert first == second
