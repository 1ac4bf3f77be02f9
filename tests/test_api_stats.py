"""End-to-end tests for the stats endpoints: data goes in through the
session API and comes back out aggregated."""

import pytest
from datetime import date, timedelta

from helpers import register_user


def _day(days_ago: int = 0) -> str:
    return (date.today() - timedelta(days=days_ago)).isoformat()


def _session(client, headers, days_ago=0, items=(), **fields):
    body = {"practice_date": _day(days_ago), "total_duration": 30, **fields}
    resp = client.post("/api/sessions", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    session_id = resp.get_json()["session"]["id"]
    for item in items:
        resp = client.post(f"/api/sessions/{session_id}/items", json=item, headers=headers)
        assert resp.status_code == 201, resp.get_json()
    return session_id


class TestTotalTime:

    def test_planned_minutes_then_actual_override(self, client, auth):
        headers, _ = auth
        _session(client, headers, total_duration=45)
        _session(client, headers, days_ago=1, total_duration=60, actual_duration=30)

        body = client.get("/api/stats/total-time", headers=headers).get_json()
        assert body["success"] is True
        stats = body["stats"]
        assert stats["total_minutes"] == 75
        assert stats["total_hours"] == 1
        assert stats["remaining_minutes"] == 15
        assert stats["session_count"] == 2
        assert stats["avg_session_duration"] == 37.5

    def test_timeframe_today(self, client, auth):
        headers, _ = auth
        _session(client, headers, total_duration=45)
        _session(client, headers, days_ago=3, total_duration=30)
        stats = client.get("/api/stats/total-time?timeframe=today",
                           headers=headers).get_json()["stats"]
        assert stats["total_minutes"] == 45

    def test_unknown_timeframe(self, client, auth):
        headers, _ = auth
        resp = client.get("/api/stats/total-time?timeframe=decade", headers=headers)
        assert resp.status_code == 400

    def test_fresh_user_gets_zeros(self, client, auth):
        headers, _ = auth
        other_headers, _ = register_user(client, "ben@example.com", "ben")
        _session(client, other_headers, total_duration=90)
        stats = client.get("/api/stats/total-time", headers=headers).get_json()["stats"]
        assert stats["total_minutes"] == 0
        assert stats["avg_session_duration"] == 0.0


class TestStreakAndConsistency:

    def test_streak(self, client, auth):
        headers, _ = auth
        for n in (0, 1, 2, 5):
            _session(client, headers, days_ago=n)
        streak = client.get("/api/stats/streak", headers=headers).get_json()["streak"]
        assert streak == {"current_streak": 3,
                          "message": "You've practiced 3 days in a row!"}

    def test_consistency(self, client, auth):
        headers, _ = auth
        _session(client, headers)
        _session(client, headers, days_ago=1)
        body = client.get("/api/stats/consistency?days=7", headers=headers).get_json()
        assert body["consistency"] == {
            "days_practiced": 2,
            "total_days": 7,
            "consistency_percentage": 28.6,
            "grade": "Fair",
        }

    def test_consistency_default_window(self, client, auth):
        headers, _ = auth
        body = client.get("/api/stats/consistency", headers=headers).get_json()
        assert body["consistency"]["total_days"] == 30

    @pytest.mark.parametrize("days", ["0", "366", "abc"])
    def test_consistency_bad_days(self, client, auth, days):
        headers, _ = auth
        resp = client.get(f"/api/stats/consistency?days={days}", headers=headers)
        assert resp.status_code == 400


class TestItemStats:

    def _seed(self, client, headers):
        _session(client, headers, days_ago=2, items=[
            {"item_type": "scale", "item_name": "C major", "tempo_bpm": 80,
             "time_spent_minutes": 10},
        ])
        _session(client, headers, days_ago=1, items=[
            {"item_type": "scale", "item_name": "C major", "tempo_bpm": 100,
             "time_spent_minutes": 10},
            {"item_type": "piece", "item_name": "Nocturne", "time_spent_minutes": 15},
        ])

    def test_top_items(self, client, auth):
        headers, _ = auth
        self._seed(client, headers)
        items = client.get("/api/stats/top-items?limit=5", headers=headers).get_json()["items"]
        assert items[0] == {"item_name": "C major", "item_type": "scale",
                            "practice_count": 2, "avg_tempo": 90, "total_time": 20}
        assert items[1]["item_name"] == "Nocturne"

    def test_top_items_limit_out_of_range(self, client, auth):
        headers, _ = auth
        resp = client.get("/api/stats/top-items?limit=100", headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "limit must be between 1 and 50"

    def test_tempo_progression(self, client, auth):
        headers, _ = auth
        self._seed(client, headers)
        body = client.get("/api/stats/tempo-progression/C%20major", headers=headers).get_json()
        assert body["item_name"] == "C major"
        assert [p["tempo_bpm"] for p in body["progression"]] == [80, 100]
        assert body["progression"][0]["date"] == _day(2)
        assert body["summary"] == {
            "first_tempo": 80,
            "latest_tempo": 100,
            "improvement_bpm": 20,
            "improvement_percentage": 25.0,
            "total_sessions": 2,
        }

    def test_tempo_progression_without_data(self, client, auth):
        headers, _ = auth
        self._seed(client, headers)
        resp = client.get("/api/stats/tempo-progression/Nocturne", headers=headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "No tempo data found for this item"


class TestTrendsAndInstruments:

    def test_session_trends(self, client, auth):
        headers, _ = auth
        _session(client, headers, total_duration=40)
        _session(client, headers, days_ago=21, total_duration=20)
        trends = client.get("/api/stats/session-trends?weeks=4",
                            headers=headers).get_json()["trends"]
        assert len(trends) == 2
        assert trends[0]["week_start"] > trends[1]["week_start"]
        assert trends[0]["total_minutes"] == 40

    def test_session_trends_bad_weeks(self, client, auth):
        headers, _ = auth
        resp = client.get("/api/stats/session-trends?weeks=60", headers=headers)
        assert resp.status_code == 400

    def test_instruments(self, client, auth):
        headers, _ = auth
        _session(client, headers, total_duration=30, instrument="piano")
        _session(client, headers, total_duration=10)
        body = client.get("/api/stats/instruments", headers=headers).get_json()
        assert body["total_minutes"] == 40
        assert [(i["instrument"], i["percentage"]) for i in body["instruments"]] == [
            ("piano", 75.0), ("not specified", 25.0),
        ]

    def test_stats_require_auth(self, client):
        assert client.get("/api/stats/streak").status_code == 401
