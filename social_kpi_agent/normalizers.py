from __future__ import annotations

from contextlib import nullcontext
from dataclasses import replace
import math
from pathlib import Path
import re
from typing import IO, Iterable, Mapping

from social_kpi_agent.errors import MalformedDocumentError
from social_kpi_agent.models import (
    CountryShare,
    FieldCoercionIssue,
    HashtagRecord,
    OverviewData,
    OverviewSnapshot,
    PeriodKey,
    PostRecord,
    ReportingPeriod,
)
from social_kpi_agent.parsing import (
    SectionSpec,
    SectionedTableParser,
    group_sections,
    iter_preamble_rows,
    open_export,
)


STATUS_POST_TYPE = "Status"
MAX_COUNTRY_ROWS = 250
EXPORT_PREAMBLE_LINES = 4

OVERVIEW_COLUMNS: dict[str, int] = {
    "workspace_name": 0,
    "followers": 2,
    "reach": 3,
    "reach_rate": 4,
    "engagements": 6,
    "engagement_rate": 7,
}
COUNTRY_COLUMNS: dict[str, int] = {"country": 0, "users": 1}
POST_COLUMNS: dict[str, int] = {"text": 4, "post_type": 5, "reactions": 8}
HASHTAG_COLUMNS: dict[str, int] = {
    "hashtag": 0,
    "score": 4,
    "reach": 5,
    "reactions": 6,
    "comments": 7,
    "shares": 8,
    "video_views": 9,
}

WORKSPACE_SECTION = "workspace"
COUNTRIES_SECTION = "countries"

OVERVIEW_SECTIONS = (
    SectionSpec(
        name=WORKSPACE_SECTION,
        sentinel="Workspace Name",
        required=True,
        max_rows=1,
        skip_leading_blanks=True,
    ),
    SectionSpec(
        name=COUNTRIES_SECTION,
        sentinel="Top Countries",
        max_rows=MAX_COUNTRY_ROWS,
        stop_prefixes=("Top",),
        min_fields=2,
    ),
)

_WHITESPACE_RE = re.compile(r"\s+")
_EMPTY_NUMERIC = {"", "-", "--"}
# SQLite INTEGER is a signed 64-bit value.
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def collapse_whitespace(text: str) -> str:
    cleaned = str(text or "").replace("\r", " ").replace("\n", " ")
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def _clean_numeric(raw: object) -> str:
    text = str(raw if raw is not None else "").replace("\u00a0", " ").strip()
    if text.endswith("%"):
        text = text[:-1]
    return text.replace(",", "").replace(" ", "").lstrip("+")


def coerce_float(raw: object) -> tuple[float, bool]:
    """Parse a decorated numeric cell; ``(0.0, False)`` when it is unreadable."""
    text = _clean_numeric(raw)
    if text in _EMPTY_NUMERIC:
        return 0.0, True
    try:
        value = float(text)
    except ValueError:
        return 0.0, False
    if not math.isfinite(value):
        return 0.0, False
    return value, True


def coerce_int(raw: object) -> tuple[int, bool]:
    text = _clean_numeric(raw)
    if text in _EMPTY_NUMERIC:
        return 0, True
    try:
        value = int(text)
    except ValueError:
        number, ok = coerce_float(text)
        if not ok:
            return 0, False
        value = int(number)
    if not INT64_MIN <= value <= INT64_MAX:
        return 0, False
    return value, True


class _RowNormalizer:
    TABLE = ""
    REQUIRED_COLUMNS: tuple[str, ...] = ()
    MIN_FIELDS = 1

    def __init__(self, columns: Mapping[str, int]) -> None:
        missing = [name for name in self.REQUIRED_COLUMNS if name not in columns]
        if missing:
            raise ValueError(f"{self.TABLE} column map is missing: {', '.join(missing)}")
        for name, index in columns.items():
            if not isinstance(index, int) or isinstance(index, bool) or index < 0:
                raise ValueError(f"{self.TABLE} column {name!r} has invalid index {index!r}")
        self.columns = dict(columns)
        self.issues: list[FieldCoercionIssue] = []

    def _raw(self, fields: list[str], column: str) -> str:
        index = self.columns[column]
        if index >= len(fields):
            return ""
        return str(fields[index])

    def _text(self, fields: list[str], column: str) -> str:
        return self._raw(fields, column).strip()

    def _int(self, fields: list[str], column: str) -> int:
        raw = self._raw(fields, column)
        value, ok = coerce_int(raw)
        if not ok:
            self.issues.append(FieldCoercionIssue(self.TABLE, column, raw))
        return value

    def _float(self, fields: list[str], column: str) -> float:
        raw = self._raw(fields, column)
        value, ok = coerce_float(raw)
        if not ok:
            self.issues.append(FieldCoercionIssue(self.TABLE, column, raw))
        return value


class OverviewNormalizer(_RowNormalizer):
    TABLE = "overview"
    REQUIRED_COLUMNS = tuple(OVERVIEW_COLUMNS)

    def __init__(self, columns: Mapping[str, int] = OVERVIEW_COLUMNS) -> None:
        super().__init__(columns)

    def normalize(
        self,
        fields: list[str],
        period: str,
        fallback_organization: str = "",
    ) -> OverviewSnapshot | None:
        organization = self._text(fields, "workspace_name") or fallback_organization.strip()
        if not organization:
            return None
        return OverviewSnapshot(
            organization=organization,
            period=period,
            followers=self._int(fields, "followers"),
            reach=self._int(fields, "reach"),
            reach_rate=self._float(fields, "reach_rate"),
            engagements=self._int(fields, "engagements"),
            engagement_rate=self._float(fields, "engagement_rate"),
        )


def with_percentages(countries: list[CountryShare]) -> list[CountryShare]:
    """Recompute each share of the user total; zero total leaves every share at 0."""
    total = sum(country.users for country in countries)
    if total <= 0:
        return [replace(country, percentage=0.0) for country in countries]
    return [replace(country, percentage=country.users * 100.0 / total) for country in countries]


class CountryNormalizer(_RowNormalizer):
    TABLE = "countries"
    REQUIRED_COLUMNS = tuple(COUNTRY_COLUMNS)
    MIN_FIELDS = 2
    STOP_PREFIX = "Top"

    def __init__(self, columns: Mapping[str, int] = COUNTRY_COLUMNS) -> None:
        super().__init__(columns)
        self.stopped = False

    def normalize(self, fields: list[str], key: PeriodKey) -> CountryShare | None:
        if self.stopped:
            return None
        name = self._text(fields, "country")
        users_raw = self._text(fields, "users")
        if len(fields) < self.MIN_FIELDS or not name or name.startswith(self.STOP_PREFIX) or not users_raw:
            self.stopped = True
            return None
        try:
            users = int(users_raw)
        except ValueError:
            users = None
        if users is None or not INT64_MIN <= users <= INT64_MAX:
            # First non-integer count marks the end of the list.
            self.stopped = True
            return None
        return CountryShare(
            organization=key.organization,
            period=key.period,
            country=name,
            users=users,
        )

    def normalize_all(self, rows: Iterable[list[str]], key: PeriodKey) -> list[CountryShare]:
        countries: list[CountryShare] = []
        for fields in rows:
            country = self.normalize(fields, key)
            if country is None:
                if self.stopped:
                    break
                continue
            countries.append(country)
            if len(countries) >= MAX_COUNTRY_ROWS:
                break
        return with_percentages(countries)


class PostNormalizer(_RowNormalizer):
    TABLE = "posts"
    REQUIRED_COLUMNS = tuple(POST_COLUMNS)
    MIN_FIELDS = 8

    def __init__(
        self,
        columns: Mapping[str, int] = POST_COLUMNS,
        status_marker: str = STATUS_POST_TYPE,
    ) -> None:
        super().__init__(columns)
        self.status_marker = status_marker

    def normalize(self, fields: list[str], key: PeriodKey) -> PostRecord | None:
        if len(fields) < self.MIN_FIELDS:
            return None
        post_type = self._text(fields, "post_type")
        if post_type != self.status_marker:
            return None
        return PostRecord(
            organization=key.organization,
            period=key.period,
            text=collapse_whitespace(self._raw(fields, "text")),
            post_type=post_type,
            reactions=self._int(fields, "reactions"),
        )


class HashtagNormalizer(_RowNormalizer):
    TABLE = "hashtags"
    REQUIRED_COLUMNS = tuple(HASHTAG_COLUMNS)
    MIN_FIELDS = 6

    def __init__(self, columns: Mapping[str, int] = HASHTAG_COLUMNS) -> None:
        super().__init__(columns)

    def normalize(self, fields: list[str], key: PeriodKey) -> HashtagRecord | None:
        if len(fields) < self.MIN_FIELDS or not any(value.strip() for value in fields):
            return None
        return HashtagRecord(
            organization=key.organization,
            period=key.period,
            hashtag=self._text(fields, "hashtag"),
            score=self._float(fields, "score"),
            reach=self._int(fields, "reach"),
            reactions=self._int(fields, "reactions"),
            comments=self._int(fields, "comments"),
            shares=self._int(fields, "shares"),
            video_views=self._int(fields, "video_views"),
        )


def _source_context(source: str | Path | IO[str]):
    if isinstance(source, (str, Path)):
        return open_export(source)
    return nullcontext(source)


def read_overview(
    source: str | Path | IO[str],
    reporting_period: ReportingPeriod,
) -> tuple[OverviewData, list[FieldCoercionIssue]]:
    parser = SectionedTableParser(OVERVIEW_SECTIONS)
    with _source_context(source) as stream:
        sections = group_sections(parser.parse(stream))

    workspace_rows = sections.get(WORKSPACE_SECTION, [])
    if not workspace_rows:
        raise MalformedDocumentError("no data row after the 'Workspace Name' row")

    overview_normalizer = OverviewNormalizer()
    snapshot = overview_normalizer.normalize(
        workspace_rows[0],
        reporting_period.period,
        fallback_organization=reporting_period.source_label,
    )
    if snapshot is None:
        raise MalformedDocumentError("workspace name is empty in the overview export")

    country_normalizer = CountryNormalizer()
    countries = country_normalizer.normalize_all(sections.get(COUNTRIES_SECTION, []), snapshot.key)
    issues = overview_normalizer.issues + country_normalizer.issues
    return OverviewData(snapshot=snapshot, countries=countries), issues


def read_posts(source: str | Path | IO[str], key: PeriodKey) -> tuple[list[PostRecord], list[FieldCoercionIssue]]:
    normalizer = PostNormalizer()
    posts: list[PostRecord] = []
    with _source_context(source) as stream:
        for fields in iter_preamble_rows(stream, EXPORT_PREAMBLE_LINES):
            post = normalizer.normalize(fields, key)
            if post is not None:
                posts.append(post)
    return posts, normalizer.issues


def read_hashtags(
    source: str | Path | IO[str], key: PeriodKey
) -> tuple[list[HashtagRecord], list[FieldCoercionIssue]]:
    normalizer = HashtagNormalizer()
    hashtags: list[HashtagRecord] = []
    with _source_context(source) as stream:
        for fields in iter_preamble_rows(stream, EXPORT_PREAMBLE_LINES):
            hashtag = normalizer.normalize(fields, key)
            if hashtag is not None:
                hashtags.append(hashtag)
    return hashtags, normalizer.issues
