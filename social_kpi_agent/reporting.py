from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, TypeVar

from social_kpi_agent.models import (
    CountryEntry,
    CountryShare,
    HashtagEntry,
    HashtagRecord,
    MetricWithDelta,
    OverviewSnapshot,
    PostEntry,
    PostRecord,
    ReportingPeriod,
    ReportRecord,
    TrendDelta,
)
from social_kpi_agent.normalizers import collapse_whitespace


TOP_N = 5
POST_TEXT_LIMIT = 50
ELLIPSIS = "..."
MISSING_NARRATIVE = "_Not available._"

T = TypeVar("T")


def truncate_text(text: str, limit: int = POST_TEXT_LIMIT) -> str:
    clean = collapse_whitespace(text)
    if len(clean) <= limit:
        return clean
    return clean[:limit] + ELLIPSIS


def top_by(items: Iterable[T], key: Callable[[T], float], limit: int = TOP_N) -> list[T]:
    # sorted() is stable with reverse=True too: ties keep ingestion order.
    return sorted(items, key=key, reverse=True)[: max(0, limit)]


def assemble_report(
    period: ReportingPeriod,
    snapshot: OverviewSnapshot,
    countries: list[CountryShare],
    posts: list[PostRecord],
    hashtags: list[HashtagRecord],
    trend: TrendDelta,
) -> ReportRecord:
    top_countries = top_by(countries, key=lambda row: row.users)
    top_posts = top_by(posts, key=lambda row: row.reactions)
    top_hashtags = top_by(hashtags, key=lambda row: row.score)

    return ReportRecord(
        month=period.month_label,
        period=period.period_label,
        organization=snapshot.organization,
        followers=MetricWithDelta(snapshot.followers, trend.followers),
        reach=MetricWithDelta(snapshot.reach, trend.reach_pct),
        engagements=MetricWithDelta(snapshot.engagements, trend.engagements_pct),
        engagement_rate=MetricWithDelta(snapshot.engagement_rate, trend.engagement_rate),
        top_posts=tuple(PostEntry(truncate_text(row.text), row.reactions) for row in top_posts),
        top_hashtags=tuple(HashtagEntry(row.hashtag, row.score) for row in top_hashtags),
        top_countries=tuple(
            CountryEntry(row.country, row.users, row.percentage) for row in top_countries
        ),
    )


def _fmt_int(value: float | int) -> str:
    try:
        rounded = int(round(float(value)))
    except (TypeError, ValueError):
        return "0"
    return f"{rounded:,}"


def _fmt_signed_int(value: float | int) -> str:
    try:
        raw = float(value)
    except (TypeError, ValueError):
        raw = 0.0
    sign = "+" if raw >= 0 else "-"
    return f"{sign}{_fmt_int(abs(raw))}"


def _fmt_score(value: float) -> str:
    text = f"{float(value):.2f}".rstrip("0").rstrip(".")
    return text or "0"


def _direction(value: float, up: str, down: str) -> str:
    return up if value >= 0 else down


def _summary_lines(report: ReportRecord) -> list[str]:
    followers = report.followers
    reach = report.reach
    engagements = report.engagements
    rate = report.engagement_rate
    return [
        f"- Total Followers: {_fmt_int(followers.value)} "
        f"({_fmt_signed_int(followers.delta)} "
        f"{_direction(followers.delta, 'new', 'fewer')} followers)",
        f"- Total Reach: {_fmt_int(reach.value)} "
        f"({reach.delta:+.1f}% {_direction(reach.delta, 'increase', 'decrease')})",
        f"- Total Engagements: {_fmt_int(engagements.value)} "
        f"({engagements.delta:+.1f}% {_direction(engagements.delta, 'increase', 'decrease')})",
        f"- Engagement Rate: {rate.value:.2f}% "
        f"({rate.delta:+.1f} pp {_direction(rate.delta, 'increase', 'decrease')})",
    ]


def _numbered(rows: list[str]) -> list[str]:
    if not rows:
        return ["- No data available."]
    return [f"{idx}. {row}" for idx, row in enumerate(rows, start=1)]


def build_markdown_report(report: ReportRecord) -> str:
    lines: list[str] = []
    lines.append(f"# {report.month} KPIs")
    lines.append("")
    lines.append(f"For the period {report.period}")
    lines.append("")
    lines.append("## Monthly Performance Summary")
    lines.append("")
    lines.extend(_summary_lines(report))
    lines.append("")
    lines.append("## Interaction Breakdown")
    lines.append("")
    lines.append("### Top-Performing Posts by Reactions")
    lines.append("")
    lines.extend(_numbered([f"{post.text} ({_fmt_int(post.reactions)})" for post in report.top_posts]))
    lines.append("")
    lines.append("### Top Hashtags by Score")
    lines.append("")
    lines.extend(
        _numbered([f"{tag.hashtag} ({_fmt_score(tag.score)})" for tag in report.top_hashtags])
    )
    lines.append("")
    lines.append("### Geographic Distribution")
    lines.append("")
    lines.extend(
        _numbered(
            [f"{country.country} ({country.percentage:.1f}%)" for country in report.top_countries]
        )
    )
    lines.append("")
    lines.append("## Insights and Recommendations")
    lines.append("")
    lines.append((report.insights or "").strip() or MISSING_NARRATIVE)
    lines.append("")
    lines.append("## Next Steps")
    lines.append("")
    lines.append((report.next_steps or "").strip() or MISSING_NARRATIVE)
    return "\n".join(lines).rstrip() + "\n"


def write_markdown(path: str | Path, text: str) -> Path:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    return output_path
