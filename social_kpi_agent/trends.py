from __future__ import annotations

from social_kpi_agent.models import OverviewSnapshot, PeriodKey, TrendDelta
from social_kpi_agent.periods import previous_period
from social_kpi_agent.store import SnapshotStore


def _safe_pct(current: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return (current - baseline) * 100.0 / baseline


def compute_deltas(current: OverviewSnapshot, previous: OverviewSnapshot | None) -> TrendDelta:
    if previous is None:
        return TrendDelta()
    return TrendDelta(
        followers=int(current.followers) - int(previous.followers),
        reach_pct=_safe_pct(float(current.reach), float(previous.reach)),
        engagements_pct=_safe_pct(float(current.engagements), float(previous.engagements)),
        engagement_rate=float(current.engagement_rate) - float(previous.engagement_rate),
    )


def calculate_trend(store: SnapshotStore, key: PeriodKey, current: OverviewSnapshot) -> TrendDelta:
    """Month-over-month deltas against the same organization's previous calendar month.

    A missing previous snapshot is the normal first-period case and yields zero deltas.
    """
    previous = store.get_summary(key.organization, previous_period(key.period))
    return compute_deltas(current, previous)
