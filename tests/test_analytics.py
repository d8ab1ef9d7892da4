from datetime import date

from conftest import SOURCE, make_sample, utc
from rowtrack.analytics import (
    available_dates,
    compare_trailing,
    daily_stats,
    delta,
    table_analytics,
    team_analytics,
    window_averages,
    window_stats,
)


def test_two_samples_in_first_window_average():
    samples = [
        make_sample("Team A", utc(2025, 12, 5, 1, 0), speed="3.0"),
        make_sample("Team A", utc(2025, 12, 5, 1, 30), speed="4.0"),
    ]
    stats = window_stats(samples, 0)
    assert stats == [
        {"window": "00:00-04:00", "startHour": 0, "endHour": 4, "avgSpeed": 3.5, "dataPoints": 2}
    ]


def test_empty_windows_are_omitted_not_zero():
    samples = [make_sample("Team A", utc(2025, 12, 5, 13, 0), speed="2.0")]
    stats = window_stats(samples, 0)
    assert [s["window"] for s in stats] == ["12:00-16:00"]
    averages = window_averages(samples, 0)
    assert averages["12:00-16:00"] == 2.0
    assert averages["00:00-04:00"] is None


def test_zero_speed_is_kept_distinct_from_missing():
    samples = [make_sample("Team A", utc(2025, 12, 5, 5, 0), speed="n/a")]
    averages = window_averages(samples, 0)
    assert averages["04:00-08:00"] == 0.0
    assert averages["08:00-12:00"] is None


def test_daily_stats_groups_by_local_date_under_offset():
    samples = [
        # 02:00 UTC is 22:00 the previous day at UTC-4
        make_sample("Team A", utc(2025, 12, 5, 2, 0), speed="2.0"),
        make_sample("Team A", utc(2025, 12, 5, 10, 0), speed="4.0"),
        make_sample("Team A", utc(2025, 12, 5, 11, 0), speed="5.0"),
    ]
    days = daily_stats(samples, -4)
    assert [d["date"] for d in days] == ["2025-12-04", "2025-12-05"]
    assert days[0]["timeWindows"][0]["window"] == "20:00-24:00"
    assert days[1]["avgSpeed"] == 4.5
    assert days[1]["dataPoints"] == 2
    assert [w["window"] for w in days[1]["timeWindows"]] == ["04:00-08:00"]


def test_empty_input_yields_no_rows():
    assert daily_stats([], 0) == []
    assert team_analytics([], 0) is None


def test_team_analytics_payload():
    samples = [make_sample("Team A", utc(2025, 12, 5, 1, 0), speed="3.0")]
    payload = team_analytics(samples, 3)
    assert payload["teamName"] == "Team A"
    assert payload["sourceUrl"] == SOURCE
    assert payload["timezone"] == 3
    assert payload["dailyStats"][0]["timeWindows"][0]["window"] == "04:00-08:00"


def test_delta_rounding_and_missing_baseline():
    assert delta(3.45, 3.21) == {"diff": 0.24, "percentChange": 7.5}
    assert delta(None, 3.21) == {"diff": None, "percentChange": None}
    assert delta(3.0, None) == {"diff": None, "percentChange": None}
    assert delta(3.0, 0.0) == {"diff": 3.0, "percentChange": None}


def test_ties_round_half_up():
    samples = [
        make_sample("Team A", utc(2025, 12, 5, 1, 0), speed="3.0"),
        make_sample("Team A", utc(2025, 12, 5, 1, 30), speed="3.25"),
    ]
    assert window_stats(samples, 0)[0]["avgSpeed"] == 3.13
    assert daily_stats(samples, 0)[0]["avgSpeed"] == 3.13
    # 0.01 / 4.0 is exactly 0.25%
    assert delta(4.01, 4.0) == {"diff": 0.01, "percentChange": 0.3}


def test_compare_trailing_team_union_and_nulls():
    today = [make_sample("Bravo", utc(2025, 12, 5, 1, 0), speed="3.45")]
    past = [
        make_sample("Alpha", utc(2025, 12, 1, 2, 0), speed="2.0"),
        make_sample("Bravo", utc(2025, 12, 2, 3, 0), speed="3.21"),
    ]
    rows = compare_trailing(today, past, 0)
    assert [r["teamName"] for r in rows] == ["Alpha", "Bravo"]

    alpha = rows[0]["00:00-04:00"]
    assert alpha["current"] is None
    assert alpha["sevenDayAvg"] == 2.0
    assert alpha["diff"] is None and alpha["percentChange"] is None
    assert rows[0]["dailyAverage"] is None
    assert rows[0]["dataPoints"] == 0

    bravo = rows[1]["00:00-04:00"]
    assert bravo == {"current": 3.45, "sevenDayAvg": 3.21, "diff": 0.24, "percentChange": 7.5}
    assert rows[1]["04:00-08:00"] == {"current": None, "sevenDayAvg": None, "diff": None, "percentChange": None}


def test_team_with_no_history_gets_null_baseline():
    rows = compare_trailing([make_sample("New", utc(2025, 12, 5, 9, 0), speed="4.0")], [], 0)
    cell = rows[0]["08:00-12:00"]
    assert cell["current"] == 4.0
    assert cell["sevenDayAvg"] is None
    assert rows[0]["sevenDayAverage"] is None


def test_table_analytics_uses_two_range_reads(store, memory_store):
    teams = [f"Team {i}" for i in range(12)]
    for i, team in enumerate(teams):
        memory_store.add(
            make_sample(team, utc(2025, 12, 5, 6, 0), speed="4.0"),
            make_sample(team, utc(2025, 12, 1, 6, 0), speed="2.0"),
            # Outside both ranges
            make_sample(team, utc(2025, 11, 20, 6, 0), speed="9.0"),
        )
    memory_store.reads.clear()

    payload = table_analytics(store, SOURCE, date(2025, 12, 5), 0)

    assert len(memory_store.reads) == 2
    assert memory_store.reads[0]["end_exclusive"] is False
    assert memory_store.reads[1]["end_exclusive"] is True
    assert memory_store.reads[1]["end"] == memory_store.reads[0]["start"]
    assert payload["count"] == 12
    assert payload["date"] == "2025-12-05"
    assert payload["comparisonPeriod"] == "7 days"
    cell = payload["data"][0]["04:00-08:00"]
    assert cell == {"current": 4.0, "sevenDayAvg": 2.0, "diff": 2.0, "percentChange": 100.0}


def test_trailing_window_excludes_target_day_and_day_minus_eight(store, memory_store):
    memory_store.add(
        make_sample("Team A", utc(2025, 11, 27, 23, 59), speed="9.0"),  # D-8
        make_sample("Team A", utc(2025, 11, 28, 0, 0), speed="1.0"),  # D-7
        make_sample("Team A", utc(2025, 12, 4, 23, 59), speed="3.0"),  # D-1
        make_sample("Team A", utc(2025, 12, 5, 0, 0), speed="5.0"),  # D
    )
    payload = table_analytics(store, SOURCE, date(2025, 12, 5), 0)
    row = payload["data"][0]
    assert row["historicalDataPoints"] == 2
    assert row["sevenDayAverage"] == 2.0
    assert row["dataPoints"] == 1
    assert row["dailyAverage"] == 5.0


def test_available_dates_descending_under_offset():
    instants = [utc(2025, 12, 5, 2, 0), utc(2025, 12, 5, 10, 0), utc(2025, 12, 3, 12, 0)]
    assert available_dates(instants, 0) == ["2025-12-05", "2025-12-03"]
    assert available_dates(instants, -4) == ["2025-12-05", "2025-12-04", "2025-12-03"]
