from __future__ import annotations

from datetime import date, timedelta
from pathlib import PurePath
import re

from social_kpi_agent.errors import FormatError
from social_kpi_agent.models import PERIOD_RE, ReportingPeriod


SEGMENT_DELIMITER = "∙"

MONTHS: dict[str, tuple[int, str]] = {
    "Jan": (1, "January"),
    "Feb": (2, "February"),
    "Mar": (3, "March"),
    "Apr": (4, "April"),
    "May": (5, "May"),
    "Jun": (6, "June"),
    "Jul": (7, "July"),
    "Aug": (8, "August"),
    "Sep": (9, "September"),
    "Oct": (10, "October"),
    "Nov": (11, "November"),
    "Dec": (12, "December"),
}

_START_DATE_RE = re.compile(r"^(?P<d>\d{1,2})\s+(?P<m>[A-Za-z]+)\s+(?P<y>\d{4})$")


def _split_segments(filename: str) -> list[str]:
    name = PurePath(str(filename)).name
    if name.lower().endswith(".csv"):
        name = name[: -len(".csv")]
    segments = [part.strip() for part in name.split(SEGMENT_DELIMITER)]
    if len(segments) < 3:
        raise FormatError(
            f"invalid filename format: expected 3 '{SEGMENT_DELIMITER}'-separated "
            f"segments in {name!r}"
        )
    return segments


def extract_reporting_period(filename: str) -> ReportingPeriod:
    """Derive the ``YYYY-MM`` period and human labels from an export filename.

    Expected form: ``<Organization> ∙ <TableKind> ∙ <D Mon YYYY> - <D Mon YYYY>.csv``.
    Only the start date of the range decides the period.
    """
    segments = _split_segments(filename)
    date_range = segments[-1]

    halves = date_range.split("-", 1)
    if len(halves) < 2 or not halves[0].strip() or not halves[1].strip():
        raise FormatError(f"invalid date range in filename: {date_range!r}")

    start_text = " ".join(halves[0].split())
    match = _START_DATE_RE.match(start_text)
    if not match:
        raise FormatError(f"invalid start date format: {start_text!r}")

    month_abbr = match.group("m")
    if month_abbr not in MONTHS:
        raise FormatError(f"invalid month: {month_abbr}")
    month_num, month_name = MONTHS[month_abbr]

    year = int(match.group("y"))
    day = int(match.group("d"))
    try:
        date(year, month_num, day)
    except ValueError as exc:
        raise FormatError(f"invalid start date: {start_text!r}") from exc

    period = f"{year:04d}-{month_num:02d}"
    return ReportingPeriod(
        period=period,
        month_label=f"{month_name} {year}",
        period_label=date_range,
        source_label=segments[0],
    )


def previous_period(period: str) -> str:
    if not PERIOD_RE.match(period or ""):
        raise FormatError(f"invalid period: {period!r} (expected YYYY-MM)")
    year_text, month_text = period.split("-", 1)
    first_of_month = date(int(year_text), int(month_text), 1)
    previous_month_end = first_of_month - timedelta(days=1)
    return previous_month_end.strftime("%Y-%m")


def report_filename(workspace_name: str, period: str) -> str:
    clean = workspace_name.replace("(Workspace)", "").strip()
    return f"{clean} {period}.md"
