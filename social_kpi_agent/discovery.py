from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from social_kpi_agent.errors import ExportDiscoveryError


OVERVIEW_MARKER = "Overview"
POST_INSIGHTS_MARKER = "Post Insights"
HASHTAG_ANALYSIS_MARKER = "Hashtag Analysis"


@dataclass(frozen=True)
class ExportFiles:
    overview: Path
    posts: Path
    hashtags: Path


def _is_export(name: str, marker: str) -> bool:
    return marker in name and name.endswith(".csv")


def is_overview_file(name: str) -> bool:
    return _is_export(name, OVERVIEW_MARKER)


def is_post_insights_file(name: str) -> bool:
    return _is_export(name, POST_INSIGHTS_MARKER)


def is_hashtag_analysis_file(name: str) -> bool:
    return _is_export(name, HASHTAG_ANALYSIS_MARKER)


def _scan_directory(directory: Path) -> ExportFiles:
    overview: Path | None = None
    posts: Path | None = None
    hashtags: Path | None = None

    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            continue
        name = entry.name
        if is_overview_file(name):
            overview = entry
        elif is_post_insights_file(name):
            posts = entry
        elif is_hashtag_analysis_file(name):
            hashtags = entry

    if overview is None or posts is None or hashtags is None:
        missing = [
            label
            for label, found in (
                (OVERVIEW_MARKER, overview),
                (POST_INSIGHTS_MARKER, posts),
                (HASHTAG_ANALYSIS_MARKER, hashtags),
            )
            if found is None
        ]
        raise ExportDiscoveryError(
            f"could not find all required CSV files in directory: {directory} "
            f"(missing: {', '.join(missing)})"
        )
    return ExportFiles(overview=overview, posts=posts, hashtags=hashtags)


def find_export_files(param: str | Path) -> ExportFiles:
    """Resolve the three exports from a directory, or from one of the files in it."""
    path = Path(param)
    if not path.exists():
        raise FileNotFoundError(f"no such file or directory: {path}")
    if path.is_dir():
        return _scan_directory(path)

    name = path.name
    if not (is_overview_file(name) or is_post_insights_file(name) or is_hashtag_analysis_file(name)):
        raise ExportDiscoveryError(f"provided file is not a recognized CSV type: {name}")
    return _scan_directory(path.parent)
