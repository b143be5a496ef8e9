import io

import pytest

from social_kpi_agent.errors import MalformedDocumentError
from social_kpi_agent.models import CountryShare, PeriodKey, ReportingPeriod
from social_kpi_agent.normalizers import (
    CountryNormalizer,
    HashtagNormalizer,
    OverviewNormalizer,
    PostNormalizer,
    coerce_float,
    coerce_int,
    collapse_whitespace,
    read_hashtags,
    read_overview,
    read_posts,
    with_percentages,
)


KEY = PeriodKey("Acme", "2025-07")
PERIOD = ReportingPeriod(
    period="2025-07",
    month_label="July 2025",
    period_label="1 Jul 2025 - 31 Jul 2025",
    source_label="Acme",
)

OVERVIEW_CSV = """Workspace Name,Profiles,Followers,Reach,Reach Rate,Impressions,Engagements,Engagement Rate
Acme (Workspace),3,"1,200","5,000",4.5%,9000,300,6.25%

Top Countries,Users
Poland,60
Germany,40
Top Cities,Users
Warsaw,10
"""

POSTS_CSV = """Post Insights
Acme
1 Jul 2025 - 31 Jul 2025
Date,Profile,Network,Link,Text,Type,Impressions,Reach,Reactions
2025-07-02,Acme,LinkedIn,http://x/1,"Launch
  day   is here",Status,100,90,42
2025-07-03,Acme,LinkedIn,http://x/2,Gallery,Photo,100,90,999
2025-07-04,Acme,LinkedIn,http://x/3,Short row,Status
2025-07-05,Acme,LinkedIn,http://x/4,Odd count,Status,100,90,n/a
"""

HASHTAGS_CSV = """Hashtag Analysis
Acme
1 Jul 2025 - 31 Jul 2025
Hashtag,Posts,Profiles,Networks,Score,Reach,Reactions,Comments,Shares,Video Views
#launch,3,1,1,8.5,"1,000",40,5,2,0
#team,1,1,1,2,100,4,0,0,
#short,1,1
"""


def test_coerce_handles_decorated_numbers() -> None:
    assert coerce_int("1,234") == (1234, True)
    assert coerce_int("+12") == (12, True)
    assert coerce_int("1 234") == (1234, True)
    assert coerce_int("12.0") == (12, True)
    assert coerce_float("6.25%") == (6.25, True)
    assert coerce_float("") == (0.0, True)
    assert coerce_float("--") == (0.0, True)


def test_coerce_reports_unreadable_values() -> None:
    assert coerce_int("n/a") == (0, False)
    assert coerce_float("abc") == (0.0, False)
    assert coerce_float("inf") == (0.0, False)
    assert coerce_float("nan") == (0.0, False)


def test_collapse_whitespace() -> None:
    assert collapse_whitespace("  Launch\n  day \t is\r\nhere ") == "Launch day is here"


def test_overview_normalizer_uses_fallback_organization() -> None:
    normalizer = OverviewNormalizer()
    fields = ["", "3", "10", "20", "1%", "", "5", "2%"]

    snapshot = normalizer.normalize(fields, "2025-07", fallback_organization="Acme")

    assert snapshot is not None
    assert snapshot.organization == "Acme"
    assert snapshot.followers == 10
    assert snapshot.engagement_rate == 2.0
    assert normalizer.normalize(fields, "2025-07") is None


def test_overview_normalizer_records_coercion_issues() -> None:
    normalizer = OverviewNormalizer()
    snapshot = normalizer.normalize(["Acme", "", "lots", "20"], "2025-07")

    assert snapshot is not None
    assert snapshot.followers == 0
    assert snapshot.engagements == 0
    assert [(issue.table, issue.column, issue.raw) for issue in normalizer.issues] == [
        ("overview", "followers", "lots")
    ]


def test_country_percentages_sum_to_hundred() -> None:
    countries = CountryNormalizer().normalize_all([["A", "60"], ["B", "40"]], KEY)

    assert [country.percentage for country in countries] == [60.0, 40.0]
    assert abs(sum(country.percentage for country in countries) - 100.0) < 1e-9


def test_country_percentages_with_zero_total() -> None:
    countries = with_percentages(
        [CountryShare("Acme", "2025-07", "A", 0), CountryShare("Acme", "2025-07", "B", 0)]
    )
    assert [country.percentage for country in countries] == [0.0, 0.0]


def test_country_list_stops_at_first_invalid_count() -> None:
    rows = [["Poland", "60"], ["Germany", "many"], ["France", "40"]]

    countries = CountryNormalizer().normalize_all(rows, KEY)

    assert [country.country for country in countries] == ["Poland"]
    assert countries[0].percentage == 100.0


def test_country_list_stops_at_blank_name_or_top_prefix() -> None:
    assert len(CountryNormalizer().normalize_all([["A", "1"], ["", "2"], ["B", "3"]], KEY)) == 1
    assert len(CountryNormalizer().normalize_all([["A", "1"], ["Top Cities", "2"]], KEY)) == 1
    assert len(CountryNormalizer().normalize_all([["A", "1"], ["B"]], KEY)) == 1


def test_post_normalizer_keeps_only_status_posts() -> None:
    normalizer = PostNormalizer()
    status = ["d", "p", "n", "l", "Hello", "Status", "1", "1", "42"]
    photo = ["d", "p", "n", "l", "Look", "Photo", "1", "1", "999"]

    post = normalizer.normalize(status, KEY)

    assert post is not None
    assert post.reactions == 42
    assert post.post_type == "Status"
    assert normalizer.normalize(photo, KEY) is None
    assert normalizer.normalize(status[:7], KEY) is None


def test_post_with_eight_fields_has_zero_reactions() -> None:
    post = PostNormalizer().normalize(["d", "p", "n", "l", "Hi", "Status", "1", "1"], KEY)
    assert post is not None
    assert post.reactions == 0


def test_hashtag_normalizer_maps_columns() -> None:
    tag = HashtagNormalizer().normalize(
        ["#go", "1", "1", "1", "7.5", "1,000", "40", "5", "2", "11"], KEY
    )

    assert tag is not None
    assert tag.hashtag == "#go"
    assert tag.score == 7.5
    assert tag.reach == 1000
    assert (tag.reactions, tag.comments, tag.shares, tag.video_views) == (40, 5, 2, 11)
    assert HashtagNormalizer().normalize(["#go", "1", "1"], KEY) is None


def test_invalid_column_map_raises() -> None:
    with pytest.raises(ValueError):
        PostNormalizer(columns={"text": 4, "post_type": 5})
    with pytest.raises(ValueError):
        HashtagNormalizer(
            columns={
                "hashtag": 0,
                "score": -1,
                "reach": 5,
                "reactions": 6,
                "comments": 7,
                "shares": 8,
                "video_views": 9,
            }
        )


def test_read_overview_from_export() -> None:
    overview, issues = read_overview(io.StringIO(OVERVIEW_CSV), PERIOD)

    snapshot = overview.snapshot
    assert issues == []
    assert snapshot.organization == "Acme (Workspace)"
    assert snapshot.period == "2025-07"
    assert (snapshot.followers, snapshot.reach, snapshot.engagements) == (1200, 5000, 300)
    assert snapshot.reach_rate == 4.5
    assert snapshot.engagement_rate == 6.25
    assert [(c.country, c.users, c.percentage) for c in overview.countries] == [
        ("Poland", 60, 60.0),
        ("Germany", 40, 40.0),
    ]
    assert all(c.organization == "Acme (Workspace)" for c in overview.countries)


def test_read_overview_without_workspace_row_is_malformed() -> None:
    with pytest.raises(MalformedDocumentError):
        read_overview(io.StringIO("Top Countries,Users\nPoland,1\n"), PERIOD)
    with pytest.raises(MalformedDocumentError):
        read_overview(io.StringIO("Workspace Name,Profiles\n"), PERIOD)


def test_read_posts_from_export() -> None:
    posts, issues = read_posts(io.StringIO(POSTS_CSV), KEY)

    assert [(post.text, post.reactions) for post in posts] == [
        ("Launch day is here", 42),
        ("Odd count", 0),
    ]
    assert [(issue.table, issue.column, issue.raw) for issue in issues] == [
        ("posts", "reactions", "n/a")
    ]


def test_read_hashtags_from_export() -> None:
    hashtags, issues = read_hashtags(io.StringIO(HASHTAGS_CSV), KEY)

    assert issues == []
    assert [(tag.hashtag, tag.score, tag.reach) for tag in hashtags] == [
        ("#launch", 8.5, 1000),
        ("#team", 2.0, 100),
    ]
    assert hashtags[1].video_views == 0


def test_read_posts_from_path(tmp_path) -> None:
    path = tmp_path / "Acme ∙ Post Insights ∙ 1 Jul 2025 - 31 Jul 2025.csv"
    path.write_text("\ufeff" + POSTS_CSV, encoding="utf-8")

    posts, _ = read_posts(path, KEY)

    assert len(posts) == 2


def test_integers_outside_sqlite_range_are_unreadable() -> None:
    assert coerce_int("99999999999999999999999") == (0, False)
    assert coerce_int("-9223372036854775809") == (0, False)
    assert coerce_int("9223372036854775807") == (9223372036854775807, True)
    assert coerce_int("1e30") == (0, False)


def test_oversized_overview_number_becomes_coercion_issue() -> None:
    text = "Workspace Name,Profiles,Followers\nAcme,1,99999999999999999999999\n"

    overview, issues = read_overview(io.StringIO(text), PERIOD)

    assert overview.snapshot.followers == 0
    assert [(issue.table, issue.column) for issue in issues] == [("overview", "followers")]


def test_oversized_country_count_ends_the_list() -> None:
    rows = [["Poland", "60"], ["Germany", "99999999999999999999999"], ["France", "40"]]

    countries = CountryNormalizer().normalize_all(rows, KEY)

    assert [country.country for country in countries] == ["Poland"]


def test_blank_line_between_workspace_header_and_row_is_skipped() -> None:
    text = "Workspace Name,Profiles,Followers\n\nAcme,1,100\n"

    overview, _ = read_overview(io.StringIO(text), PERIOD)

    assert overview.snapshot.organization == "Acme"
    assert overview.snapshot.followers == 100
