"""Session Analysis — tests for per-country aggregation."""

import pytest

from engcoach.core.session_analysis import compute_country_analysis


def _session(country, satisfaction="Satisfied", engagement=3, intelligence=3):
    return {
        "country_of_origin": country,
        "user_satisfaction": satisfaction,
        "user_emotional_engagement_score": engagement,
        "user_intelligence_score": intelligence,
    }


def test_empty_input_gives_zeroes():
    result = compute_country_analysis([])
    assert result["countries"] == []
    assert result["overall"]["total_sessions"] == 0
    assert result["overall"]["satisfaction_rate"] == 0.0


def test_groups_by_country_and_sorts_by_total():
    sessions = [
        _session("Canada"),
        _session("Kenya"),
        _session("Kenya", satisfaction="Unsatisfied"),
    ]
    rows = compute_country_analysis(sessions)["countries"]
    assert [r["country"] for r in rows] == ["Kenya", "Canada"]
    assert rows[0]["total_sessions"] == 2
    assert rows[0]["satisfaction_rate"] == pytest.approx(50.0)


def test_ties_sorted_by_country_name():
    rows = compute_country_analysis([_session("Peru"), _session("Chile")])["countries"]
    assert [r["country"] for r in rows] == ["Chile", "Peru"]


def test_scores_are_percent_of_max():
    rows = compute_country_analysis([
        _session("Canada", engagement=3, intelligence=1),
        _session("Canada", engagement=1, intelligence=2),
    ])["countries"]
    assert rows[0]["avg_engagement"] == pytest.approx(200 / 3)
    assert rows[0]["avg_intelligence"] == pytest.approx(50.0)


def test_missing_scores_are_skipped_not_zeroed():
    rows = compute_country_analysis([
        _session("Canada", engagement=None, intelligence=None),
        _session("Canada", engagement=3, intelligence=3),
    ])["countries"]
    assert rows[0]["avg_engagement"] == pytest.approx(100.0)


def test_sessions_without_country_only_count_overall():
    result = compute_country_analysis([_session(None), _session("Canada")])
    assert len(result["countries"]) == 1
    assert result["overall"]["total_sessions"] == 2
