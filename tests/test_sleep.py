"""
Tests for sleep duration math and /sleep endpoints.
"""
import pytest

from services.sleep_math import calculate_duration, duration_feedback, sleep_stats

TEST_USER_ID = "123e4567-e89b-12d3-a456-426614174000"
NIGHT = {"date": "2024-03-02", "bedtime": "23:30", "wake_time": "07:15", "quality": 4}


@pytest.mark.parametrize("bedtime,wake_time,expected", [
    ("23:30", "07:15", 7.8),
    ("22:00", "06:00", 8.0),
    ("01:00", "09:30", 8.5),
    ("07:00", "07:00", 0.0),
])
def test_calculate_duration(bedtime, wake_time, expected):
    assert calculate_duration(bedtime, wake_time) == expected


@pytest.mark.parametrize("hours,feedback", [
    (5.5, "short"),
    (7.0, "ideal"),
    (9.0, "ideal"),
    (9.5, "long"),
])
def test_duration_feedback(hours, feedback):
    assert duration_feedback(hours) == feedback


def test_stats_average_and_restful_nights():
    stats = sleep_stats([
        {"duration": 8.0, "quality": 5},
        {"duration": 6.0, "quality": 2},
        {"duration": 7.5, "quality": 4},
    ])
    assert stats == {
        "entries": 3,
        "average_duration": 7.2,
        "average_quality": 3.7,
        "restful_nights": 2,
    }


def test_stats_of_nothing_are_zero():
    assert sleep_stats([])["average_duration"] == 0.0


def test_sleep_requires_sign_in(client):
    response = client.post("/sleep", json=NIGHT)
    assert response.status_code == 401


def test_save_inserts_with_derived_duration(auth_client, mock_db):
    response = auth_client.post("/sleep", json={**NIGHT, "duration": 12})

    assert response.status_code == 200
    entry = response.json()["entry"]
    assert entry["duration"] == 7.8
    assert entry["feedback"] == "ideal"
    assert entry["quality_label"] == "Deep"
    row = mock_db.rows["sleep_entries"][0]
    assert row["user_id"] == TEST_USER_ID
    assert row["date"] == "2024-03-02"


def test_save_same_date_updates(auth_client, mock_db):
    auth_client.post("/sleep", json=NIGHT)
    response = auth_client.post("/sleep", json={**NIGHT, "wake_time": "05:30", "quality": 1})

    assert response.status_code == 200
    assert len(mock_db.rows["sleep_entries"]) == 1
    assert mock_db.rows["sleep_entries"][0]["duration"] == 6.0
    assert response.json()["entry"]["feedback"] == "short"
    assert response.json()["notifications"][0]["description"] == "Sleep entry updated."


def test_invalid_quality_rejected(auth_client):
    response = auth_client.post("/sleep", json={**NIGHT, "quality": 6})
    assert response.status_code == 422


def test_list_and_stats(auth_client, mock_db):
    auth_client.post("/sleep", json=NIGHT)
    auth_client.post("/sleep", json={**NIGHT, "date": "2024-03-03", "bedtime": "22:00", "wake_time": "08:00"})

    entries = auth_client.get("/sleep").json()["entries"]
    assert len(entries) == 2

    stats = auth_client.get("/sleep/stats").json()
    assert stats["entries"] == 2
    assert stats["average_duration"] == 8.9
    assert stats["restful_nights"] == 2


def test_delete(auth_client, mock_db):
    entry_id = auth_client.post("/sleep", json=NIGHT).json()["entry"]["id"]

    assert auth_client.delete(f"/sleep/{entry_id}").status_code == 200
    assert mock_db.rows["sleep_entries"] == []
    assert auth_client.delete(f"/sleep/{entry_id}").status_code == 404


def test_delete_rejects_bad_id(auth_client):
    assert auth_client.delete("/sleep/not-a-uuid").status_code == 400
