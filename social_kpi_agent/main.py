from __future__ import annotations

import argparse
from collections import Counter
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
import yaml

from social_kpi_agent.config import AgentConfig
from social_kpi_agent.discovery import ExportFiles, find_export_files
from social_kpi_agent.errors import (
    ExportDiscoveryError,
    FormatError,
    MalformedDocumentError,
    PersistenceError,
)
from social_kpi_agent.models import (
    CollectionKind,
    FieldCoercionIssue,
    HashtagRecord,
    OverviewData,
    PostRecord,
    ReportingPeriod,
)
from social_kpi_agent.narrative import fill_narrative
from social_kpi_agent.normalizers import read_hashtags, read_overview, read_posts
from social_kpi_agent.periods import extract_reporting_period, report_filename
from social_kpi_agent.reporting import assemble_report, build_markdown_report, write_markdown
from social_kpi_agent.store import SnapshotStore
from social_kpi_agent.trends import calculate_trend


@dataclass
class IngestResult:
    period: ReportingPeriod
    overview: OverviewData
    posts: list[PostRecord]
    hashtags: list[HashtagRecord]
    issues: list[FieldCoercionIssue] = field(default_factory=list)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Monthly social media KPI report from Overview, Post Insights and Hashtag Analysis exports."
    )
    parser.add_argument(
        "path",
        help="Directory with the three CSV exports, or one of the export files.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="YAML config with the 'api' section (default: KPI_CONFIG_PATH or config.yaml).",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="SQLite snapshot database (default: KPI_DB_PATH or analytics.db).",
    )
    parser.add_argument(
        "--output-dir",
        dest="output_dir",
        default=None,
        help="Directory for the Markdown report (default: KPI_OUTPUT_DIR or current directory).",
    )
    llm_group = parser.add_mutually_exclusive_group()
    llm_group.add_argument(
        "--llm",
        dest="use_llm_narrative",
        action="store_true",
        help="Generate insights and next steps with the configured LLM endpoint.",
    )
    llm_group.add_argument(
        "--no-llm",
        dest="use_llm_narrative",
        action="store_false",
        help="Skip narrative generation for this run.",
    )
    parser.set_defaults(use_llm_narrative=None)
    return parser.parse_args(argv)


def _apply_runtime_toggles(
    config: AgentConfig,
    db_path: str | None,
    output_dir: str | None,
    use_llm_narrative: bool | None,
) -> AgentConfig:
    updated = config
    if db_path:
        updated = replace(updated, db_path=db_path)
    if output_dir:
        updated = replace(updated, output_dir=output_dir)
    if use_llm_narrative is not None:
        updated = replace(updated, use_llm_narrative=bool(use_llm_narrative))
    return updated


def _print_issue_summary(issues: list[FieldCoercionIssue]) -> None:
    if not issues:
        return
    counts = Counter((issue.table, issue.column) for issue in issues)
    print(f"Warning: {len(issues)} numeric field(s) could not be parsed and were set to 0:")
    for (table, column), count in sorted(counts.items()):
        print(f"- {table}.{column}: {count}")


def ingest_exports(files: ExportFiles, store: SnapshotStore) -> IngestResult:
    """Parse, normalize and persist one period's exports.

    Each collection commits on its own; the overview summary is upserted first.
    """
    period = extract_reporting_period(files.overview.name)

    overview, issues = read_overview(files.overview, period)
    key = overview.key
    posts, post_issues = read_posts(files.posts, key)
    hashtags, hashtag_issues = read_hashtags(files.hashtags, key)

    store.put_summary(key, overview.snapshot)
    store.replace_collection(key, CollectionKind.COUNTRIES, overview.countries)
    store.replace_collection(key, CollectionKind.POSTS, posts)
    store.replace_collection(key, CollectionKind.HASHTAGS, hashtags)

    return IngestResult(
        period=period,
        overview=overview,
        posts=posts,
        hashtags=hashtags,
        issues=issues + post_issues + hashtag_issues,
    )


def run_pipeline(param: str | Path, config: AgentConfig, llm: Any = None) -> Path:
    files = find_export_files(param)
    print(f"Overview export: {files.overview.name}")
    print(f"Post Insights export: {files.posts.name}")
    print(f"Hashtag Analysis export: {files.hashtags.name}")

    with SnapshotStore(config.db_path) as store:
        result = ingest_exports(files, store)
        _print_issue_summary(result.issues)
        key = result.overview.key
        print(
            f"Stored snapshot {key.organization} {key.period}: "
            f"{len(result.overview.countries)} countries, {len(result.posts)} status posts, "
            f"{len(result.hashtags)} hashtags."
        )
        trend = calculate_trend(store, key, result.overview.snapshot)

    report = assemble_report(
        result.period,
        result.overview.snapshot,
        result.overview.countries,
        result.posts,
        result.hashtags,
        trend,
    )
    report = fill_narrative(report, config, llm=llm)

    output_path = Path(config.output_dir) / report_filename(key.organization, key.period)
    return write_markdown(output_path, build_markdown_report(report))


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except Exception:
        pass

    args = _parse_args(argv)
    try:
        config = AgentConfig.load(args.config_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise SystemExit(f"Error loading config: {exc}") from exc
    config = _apply_runtime_toggles(
        config,
        db_path=args.db_path,
        output_dir=args.output_dir,
        use_llm_narrative=args.use_llm_narrative,
    )

    try:
        report_path = run_pipeline(args.path, config)
    except (FileNotFoundError, ExportDiscoveryError) as exc:
        raise SystemExit(f"Error finding CSV files: {exc}") from exc
    except FormatError as exc:
        raise SystemExit(f"Error extracting period from filename: {exc}") from exc
    except MalformedDocumentError as exc:
        raise SystemExit(f"Error reading export: {exc}") from exc
    except PersistenceError as exc:
        raise SystemExit(f"Error saving snapshot: {exc}") from exc

    print(f"Report generated successfully: {report_path}")


if __name__ == "__main__":
    main()
