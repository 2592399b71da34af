"""Pull request body rendering under a hard size ceiling."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional, Sequence, cast

from .releases import Release
from .utils import format_date

RiskLevel = Literal["None", "Low", "Medium", "High"]

RISK_LEVELS: tuple[RiskLevel, ...] = ("None", "Low", "Medium", "High")
RISK_GLYPHS: dict[str, str] = {
    "None": "None ✅",
    "Low": "Low 🟢",
    "Medium": "Medium 🟡",
    "High": "High 🔴",
}
RISK_LABEL_COLORS: dict[str, str] = {
    "None": "0e8a16",
    "Low": "fbca04",
    "Medium": "e99695",
    "High": "d93f0b",
}
WORRY_FREE_LABEL = ("Worry-free", "c2e0c6")
DEFAULT_LABEL_COLOR = "cccccc"

DEFAULT_MAX_BODY_SIZE = 65000
TRUNCATION_MARKER = "\n\n...(body truncated)"
TRUNCATION_RESERVE = 50


@dataclass(frozen=True)
class RiskAssessment:
    """Risk verdict for a single release."""

    release: Release
    summary: str
    worry_free: bool
    risk: RiskLevel
    recommendations: str = ""


@dataclass(frozen=True)
class AggregateRisk:
    """Risk verdicts for a whole release window."""

    releases: list[RiskAssessment] = field(default_factory=list)
    overall_risk: RiskLevel = "None"
    overall_worry_free: bool = True


def format_risk(risk: str) -> str:
    return RISK_GLYPHS.get(risk, risk)


def _coerce_risk(value: object) -> RiskLevel:
    text = str(value or "").strip().capitalize()
    if text in RISK_LEVELS:
        return cast(RiskLevel, text)
    return "High"


def skipped_assessment(release: Release) -> RiskAssessment:
    """Placeholder verdict when no assessment service is configured."""
    return RiskAssessment(
        release=release,
        summary="AI analysis skipped (not configured).",
        worry_free=False,
        risk="High",
    )


def parse_assessment(release: Release, payload: str | Mapping[str, Any]) -> RiskAssessment:
    """Read a model response of the form ``{summary, worryFree, risk, recommendations}``.

    Unreadable responses count as a failed analysis with high risk.
    """
    data: object = payload
    if isinstance(payload, str):
        try:
            data = json.loads(payload or "{}")
        except json.JSONDecodeError:
            data = None
    if not isinstance(data, Mapping):
        return RiskAssessment(
            release=release,
            summary="Failed to analyze release.",
            worry_free=False,
            risk="High",
        )
    return RiskAssessment(
        release=release,
        summary=str(data.get("summary") or ""),
        worry_free=data.get("worryFree") is True,
        risk=_coerce_risk(data.get("risk")),
        recommendations=str(data.get("recommendations") or ""),
    )


def aggregate_risks(assessments: Sequence[RiskAssessment]) -> Optional[AggregateRisk]:
    """Combine per-release verdicts: the highest risk wins, worry-free needs all."""
    if not assessments:
        return None
    overall = max((RISK_LEVELS.index(item.risk) for item in assessments), default=0)
    return AggregateRisk(
        releases=list(assessments),
        overall_risk=RISK_LEVELS[overall],
        overall_worry_free=all(item.worry_free for item in assessments),
    )


def risk_labels(assessment: Optional[AggregateRisk]) -> list[tuple[str, str]]:
    """Return ``(name, color)`` label pairs for a pull request."""
    if assessment is None:
        return []
    labels = [
        (
            f"Risk: {assessment.overall_risk}",
            RISK_LABEL_COLORS.get(assessment.overall_risk, DEFAULT_LABEL_COLOR),
        )
    ]
    if assessment.overall_worry_free:
        labels.append(WORRY_FREE_LABEL)
    return labels


def _render_assessment(assessment: AggregateRisk, descriptions: int) -> str:
    parts = [
        "### 🤖 AI Risk Assessment\n",
        f"- **Overall Risk Level**: {format_risk(assessment.overall_risk)}\n",
        f"- **Overall Worry Free**: {'Yes ✅' if assessment.overall_worry_free else 'No ⚠️'}\n\n",
        "#### Detailed Release Summaries\n",
    ]
    for index, item in enumerate(assessment.releases):
        release = item.release
        parts.append(
            f"- **[{release.tag}]({release.url})** ({format_date(release.published_at)}) "
            f"(Risk: {format_risk(item.risk)}, Worry-free: {'Yes' if item.worry_free else 'No'})\n"
        )
        if index < descriptions:
            parts.append(f"  {item.summary}\n")
            if item.risk != "None" and item.recommendations:
                parts.append(f"  > **💡 Recommendation:** {item.recommendations}\n")
    return "".join(parts)


def _render_releases(releases: Sequence[Release]) -> str:
    parts = ["### 📦 Included Releases\n"]
    for release in releases:
        parts.append(
            f"- **[{release.tag}]({release.url})** ({format_date(release.published_at)})\n"
        )
    return "".join(parts)


def _render_log(execution_log: str) -> str:
    return (
        "\n---\n<details>\n<summary>📄 Full Execution Logs</summary>\n\n"
        f"```text\n{execution_log}\n```\n</details>\n"
    )


def _render(
    display_name: str,
    assessment: Optional[AggregateRisk],
    releases: Sequence[Release],
    execution_log: str,
    *,
    include_log: bool,
    descriptions: int,
) -> str:
    body = f"Automated version update for **{display_name}**.\n\n"
    if assessment is not None:
        body += _render_assessment(assessment, descriptions)
    else:
        body += _render_releases(releases)
    if include_log:
        body += _render_log(execution_log)
    return body


def assemble_pr_body(
    display_name: str,
    assessment: Optional[AggregateRisk],
    releases: Sequence[Release],
    execution_log: str,
    max_size: int = DEFAULT_MAX_BODY_SIZE,
) -> str:
    """Render the pull request body, shedding content until it fits ``max_size``.

    The execution log goes first, then release summaries from the oldest
    release backward; link lines always stay. If that is still too long the
    text is cut at ``max_size - 50`` characters and a truncation marker added.
    """
    include_log = True
    descriptions = len(assessment.releases) if assessment is not None else 0
    while True:
        body = _render(
            display_name,
            assessment,
            releases,
            execution_log,
            include_log=include_log,
            descriptions=descriptions,
        )
        if len(body) <= max_size:
            return body
        if include_log:
            include_log = False
        elif descriptions > 0:
            descriptions -= 1
        else:
            truncated = body[: max(0, max_size - TRUNCATION_RESERVE)] + TRUNCATION_MARKER
            return truncated[: max(0, max_size)]
