"""Session Analysis — pure per-country aggregation for the researcher analysis view.

Invariants:
    - Sessions without a country are excluded from per-country rows
    - Percentages are 0–100; averages of empty sets are 0
    - Scores are expressed as a percentage of the maximum score (3)
    - Rows sorted by total sessions, descending (ties: country name ascending)
"""

from engcoach.core.domain_types import MAX_SCORE, Satisfaction


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _summarize(sessions: list[dict]) -> dict:
    total = len(sessions)
    satisfied = sum(
        1 for s in sessions
        if Satisfaction.parse(s.get("user_satisfaction")) == Satisfaction.SATISFIED
    )
    engagement = [
        s["user_emotional_engagement_score"] for s in sessions
        if s.get("user_emotional_engagement_score") is not None
    ]
    intelligence = [
        s["user_intelligence_score"] for s in sessions
        if s.get("user_intelligence_score") is not None
    ]
    return {
        "total_sessions": total,
        "satisfaction_rate": (satisfied / total) * 100 if total else 0.0,
        "avg_engagement": _average(engagement) / MAX_SCORE * 100,
        "avg_intelligence": _average(intelligence) / MAX_SCORE * 100,
    }


def compute_country_analysis(sessions: list[dict]) -> dict:
    """Aggregate sessions overall and per country of origin. Pure, no IO."""
    by_country: dict[str, list[dict]] = {}
    for session in sessions:
        country = (session.get("country_of_origin") or "").strip()
        if country:
            by_country.setdefault(country, []).append(session)

    countries = [
        {"country": country, **_summarize(group)}
        for country, group in by_country.items()
    ]
    countries.sort(key=lambda row: (-row["total_sessions"], row["country"]))

    return {"overall": _summarize(sessions), "countries": countries}
