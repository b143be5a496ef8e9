import pytest

from social_kpi_agent.errors import FormatError
from social_kpi_agent.models import PERIOD_RE, PeriodKey
from social_kpi_agent.periods import (
    extract_reporting_period,
    previous_period,
    report_filename,
)


def test_period_from_overview_filename() -> None:
    period = extract_reporting_period("Acme ∙ Overview ∙ 1 Jul 2025 - 31 Jul 2025.csv")

    assert period.period == "2025-07"
    assert period.month_label == "July 2025"
    assert period.period_label == "1 Jul 2025 - 31 Jul 2025"
    assert period.source_label == "Acme"
    assert PERIOD_RE.match(period.period)


def test_period_uses_start_date_of_range() -> None:
    period = extract_reporting_period("/exports/Acme ∙ Post Insights ∙ 15 Dec 2024 - 14 Jan 2025.csv")

    assert period.period == "2024-12"
    assert period.month_label == "December 2024"


def test_single_digit_and_padded_days_are_accepted() -> None:
    assert extract_reporting_period("A ∙ Overview ∙ 01 Feb 2025 - 28 Feb 2025.csv").period == "2025-02"
    assert extract_reporting_period("A ∙ Overview ∙ 9 Sep 2025 - 30 Sep 2025.csv").period == "2025-09"


@pytest.mark.parametrize(
    "filename",
    [
        "Acme Overview 1 Jul 2025 - 31 Jul 2025.csv",
        "Acme ∙ Overview ∙ 1 Jul 2025.csv",
        "Acme ∙ Overview ∙ - 31 Jul 2025.csv",
        "Acme ∙ Overview ∙ July 2025 - 31 Jul 2025.csv",
        "Acme ∙ Overview ∙ 1 Jly 2025 - 31 Jul 2025.csv",
        "Acme ∙ Overview ∙ 31 Feb 2025 - 28 Feb 2025.csv",
    ],
)
def test_malformed_filenames_raise_format_error(filename: str) -> None:
    with pytest.raises(FormatError):
        extract_reporting_period(filename)


def test_unknown_month_is_named_in_error() -> None:
    with pytest.raises(FormatError, match="invalid month: Foo"):
        extract_reporting_period("Acme ∙ Overview ∙ 1 Foo 2025 - 31 Jul 2025.csv")


def test_previous_period_rolls_back_year_in_january() -> None:
    assert previous_period("2025-01") == "2024-12"
    assert previous_period("2025-03") == "2025-02"
    assert previous_period("2000-12") == "2000-11"


def test_previous_period_rejects_invalid_period() -> None:
    with pytest.raises(FormatError):
        previous_period("2025-13")
    with pytest.raises(FormatError):
        previous_period("202501")


def test_period_key_rejects_invalid_period() -> None:
    with pytest.raises(FormatError):
        PeriodKey("Acme", "2025-7")
    assert PeriodKey("Acme", "2025-07").period == "2025-07"


def test_report_filename_drops_workspace_suffix() -> None:
    assert report_filename("Acme (Workspace)", "2025-07") == "Acme 2025-07.md"
    assert report_filename("Acme", "2025-07") == "Acme 2025-07.md"
