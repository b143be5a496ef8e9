from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import re

from social_kpi_agent.errors import FormatError


PERIOD_RE = re.compile(r"^[0-9]{4}-(0[1-9]|1[0-2])$")


@dataclass(frozen=True)
class PeriodKey:
    organization: str
    period: str

    def __post_init__(self) -> None:
        if not PERIOD_RE.match(self.period):
            raise FormatError(f"invalid period: {self.period!r} (expected YYYY-MM)")


@dataclass(frozen=True)
class ReportingPeriod:
    period: str
    month_label: str
    period_label: str
    source_label: str = ""

    def key_for(self, organization: str) -> PeriodKey:
        return PeriodKey(organization=organization, period=self.period)


class CollectionKind(str, Enum):
    COUNTRIES = "countries"
    POSTS = "posts"
    HASHTAGS = "hashtags"


@dataclass(frozen=True)
class FieldCoercionIssue:
    table: str
    column: str
    raw: str


@dataclass
class OverviewSnapshot:
    organization: str
    period: str
    followers: int = 0
    reach: int = 0
    reach_rate: float = 0.0
    engagements: int = 0
    engagement_rate: float = 0.0

    @property
    def key(self) -> PeriodKey:
        return PeriodKey(self.organization, self.period)


@dataclass
class CountryShare:
    organization: str
    period: str
    country: str
    users: int
    percentage: float = 0.0

    @property
    def key(self) -> PeriodKey:
        return PeriodKey(self.organization, self.period)


@dataclass
class PostRecord:
    organization: str
    period: str
    text: str
    post_type: str
    reactions: int = 0

    @property
    def key(self) -> PeriodKey:
        return PeriodKey(self.organization, self.period)


@dataclass
class HashtagRecord:
    organization: str
    period: str
    hashtag: str
    score: float = 0.0
    reach: int = 0
    reactions: int = 0
    comments: int = 0
    shares: int = 0
    video_views: int = 0

    @property
    def key(self) -> PeriodKey:
        return PeriodKey(self.organization, self.period)


@dataclass
class OverviewData:
    """Normalized content of one Overview export."""

    snapshot: OverviewSnapshot
    countries: list[CountryShare] = field(default_factory=list)

    @property
    def key(self) -> PeriodKey:
        return self.snapshot.key


@dataclass(frozen=True)
class TrendDelta:
    followers: int = 0
    reach_pct: float = 0.0
    engagements_pct: float = 0.0
    engagement_rate: float = 0.0


@dataclass(frozen=True)
class MetricWithDelta:
    value: float
    delta: float


@dataclass(frozen=True)
class PostEntry:
    text: str
    reactions: int


@dataclass(frozen=True)
class HashtagEntry:
    hashtag: str
    score: float


@dataclass(frozen=True)
class CountryEntry:
    country: str
    users: int
    percentage: float


@dataclass(frozen=True)
class ReportRecord:
    month: str
    period: str
    organization: str
    followers: MetricWithDelta
    reach: MetricWithDelta
    engagements: MetricWithDelta
    engagement_rate: MetricWithDelta
    top_posts: tuple[PostEntry, ...] = ()
    top_hashtags: tuple[HashtagEntry, ...] = ()
    top_countries: tuple[CountryEntry, ...] = ()
    insights: str | None = None
    next_steps: str | None = None

    def with_narrative(self, insights: str, next_steps: str) -> "ReportRecord":
        return replace(self, insights=insights, next_steps=next_steps)
