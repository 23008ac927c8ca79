from __future__ import annotations

import pytest

from git_tide.aggregator import RepositoryError, ResultAggregator
from git_tide.config import Settings
from git_tide.models import ErrorKind, OutcomeStatus, UpdateOutcome, WarningKind

STAT_A = " a.txt | 1 +\n 1 files changed, 1 insertions(+), 0 deletions(-)"
STAT_B = " b.txt | 2 --\n 1 files changed, 0 insertions(+), 2 deletions(-)"


def mixed_outcomes() -> list[UpdateOutcome]:
    return [
        UpdateOutcome.success("/src/zeta", diff_stat=STAT_B),
        UpdateOutcome.success("/src/quiet"),
        UpdateOutcome.warning("/src/dirty", WarningKind.UNCOMMITTED_CHANGES),
        UpdateOutcome.error("/src/broken", ErrorKind.NETWORK_FAILURE, "failed to fetch from origin"),
        UpdateOutcome.success("/src/alpha", diff_stat=STAT_A),
    ]


def test_report_tallies_each_case() -> None:
    aggregator = ResultAggregator(Settings(concurrency=1))
    aggregator.extend(mixed_outcomes())

    report = aggregator.report()

    assert report.successes == 3
    assert report.warnings == {"/src/dirty": WarningKind.UNCOMMITTED_CHANGES}
    assert report.errors == [
        RepositoryError("/src/broken", ErrorKind.NETWORK_FAILURE, "failed to fetch from origin")
    ]
    assert report.total == len(aggregator) == 5
    assert report.has_errors


def test_updated_lists_only_successes_that_moved() -> None:
    aggregator = ResultAggregator(Settings(concurrency=1))
    aggregator.extend(mixed_outcomes())

    assert aggregator.report().updated == ["/src/alpha", "/src/zeta"]


def test_diff_stats_sorted_by_path_when_enabled() -> None:
    aggregator = ResultAggregator(Settings(concurrency=1, show_stats=True))
    aggregator.extend(mixed_outcomes())

    stats = aggregator.report().diff_stats

    assert stats == (
        f"Changes in /src/alpha:\n{STAT_A}\n"
        "\n"
        f"Changes in /src/zeta:\n{STAT_B}\n"
    )


def test_diff_stats_empty_when_disabled() -> None:
    aggregator = ResultAggregator(Settings(concurrency=1, show_stats=False))
    aggregator.extend(mixed_outcomes())

    assert aggregator.report().diff_stats == ""


def test_latest_outcome_per_path_wins() -> None:
    aggregator = ResultAggregator(Settings(concurrency=1))
    aggregator.add(UpdateOutcome.error("/src/repo", ErrorKind.CANCELLED))
    aggregator.add(UpdateOutcome.success("/src/repo"))

    report = aggregator.report()

    assert len(aggregator) == 1
    assert report.successes == 1
    assert not report.has_errors


def test_empty_report() -> None:
    report = ResultAggregator().report()

    assert report.total == 0
    assert report.diff_stats == ""
    assert not report.has_errors


def test_report_to_dict() -> None:
    aggregator = ResultAggregator(Settings(concurrency=1, show_stats=True))
    aggregator.extend(mixed_outcomes())

    data = aggregator.report().to_dict()

    assert data["total"] == 5
    assert data["successes"] == 3
    assert data["warnings"] == {"/src/dirty": "uncommitted_changes"}
    assert data["errors"] == [
        {"path": "/src/broken", "kind": "network_failure", "detail": "failed to fetch from origin"}
    ]
    assert data["diff_stats"].startswith("Changes in /src/alpha:")


def test_repository_error_message() -> None:
    error = RepositoryError("/src/repo", ErrorKind.MERGE_FAILURE, "")

    assert str(error) == "failed to update /src/repo: merge_failure"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"status": OutcomeStatus.WARNING},
        {"status": OutcomeStatus.ERROR},
        {"status": OutcomeStatus.SUCCESS, "error_kind": ErrorKind.UNEXPECTED},
        {
            "status": OutcomeStatus.ERROR,
            "error_kind": ErrorKind.UNEXPECTED,
            "warning_kind": WarningKind.UNCOMMITTED_CHANGES,
        },
    ],
)
def test_outcome_requires_exactly_one_case(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        UpdateOutcome(path="/src/repo", **kwargs)


def test_outcome_messages() -> None:
    assert UpdateOutcome.success("/r").message == "updated"
    assert (
        UpdateOutcome.warning("/r", WarningKind.UNCOMMITTED_CHANGES).message
        == "worktree contains uncommitted changes"
    )
    assert UpdateOutcome.error("/r", ErrorKind.CANCELLED).message == "cancelled"
