"""
Tests for mood catalog and mood entries.
"""
from postgrest.exceptions import APIError

from api.schemas.mood import MOOD_OPTIONS, mood_option

TEST_USER_ID = "123e4567-e89b-12d3-a456-426614174000"


def test_catalog_has_seven_weather_moods(client):
    response = client.get("/mood/options")

    assert response.status_code == 200
    options = response.json()["options"]
    assert [o["id"] for o in options] == [
        "sunny", "partly-cloudy", "cloudy", "rainy", "stormy", "rainbow", "starry",
    ]
    assert {o["id"]: o["value"] for o in options}["stormy"] == 1


def test_unknown_stored_mood_reads_as_first_option():
    assert mood_option("hurricane") is MOOD_OPTIONS[0]
    assert mood_option(None) is MOOD_OPTIONS[0]


def test_anonymous_mood_is_not_saved(client, mock_db):
    response = client.post("/mood", json={"mood_id": "rainy", "note": "long day"})

    assert response.status_code == 201
    body = response.json()
    assert body["entry"]["mood"]["id"] == "rainy"
    assert body["notifications"][0]["title"] == "Cloud sync skipped"
    assert mock_db.calls == []


def test_unknown_mood_is_rejected(auth_client):
    response = auth_client.post("/mood", json={"mood_id": "hurricane"})
    assert response.status_code == 422


def test_signed_in_mood_is_saved_with_score(auth_client, mock_db):
    couple_id = "323e4567-e89b-12d3-a456-426614174111"

    response = auth_client.post(
        "/mood",
        json={"mood_id": "sunny", "note": "great"},
        headers={"X-Couple-ID": couple_id},
    )

    assert response.status_code == 201
    row = mock_db.rows["mood_entries"][0]
    assert row["user_id"] == TEST_USER_ID
    assert row["couple_id"] == couple_id
    assert row["score"] == 5
    assert row["mood_id"] == "sunny"
    assert response.json()["notifications"][0]["title"] == "Saved to cloud"


def test_insert_failure_is_reported_not_raised(auth_client, mock_db):
    mock_db.fail("mood_entries", "insert", APIError({"message": "row violates policy", "code": "42501"}))

    response = auth_client.post("/mood", json={"mood_id": "cloudy"})

    assert response.status_code == 201
    notification = response.json()["notifications"][0]
    assert notification["variant"] == "destructive"
    assert notification["description"] == "row violates policy"


def test_history_is_scoped_to_user(auth_client, mock_db):
    mock_db.rows["mood_entries"] = [
        {"id": "1", "user_id": TEST_USER_ID, "mood_id": "starry", "note": None,
         "created_at": "2024-03-10T10:00:00+00:00"},
        {"id": "2", "user_id": "someone-else", "mood_id": "stormy", "note": "x",
         "created_at": "2024-03-10T11:00:00+00:00"},
    ]

    entries = auth_client.get("/mood").json()["entries"]

    assert [e["id"] for e in entries] == ["1"]
    assert entries[0]["mood"]["name"] == "Starry Night"
    assert entries[0]["note"] == ""


def test_history_is_empty_when_signed_out(client):
    assert client.get("/mood").json() == {"entries": []}


def test_current_mood(auth_client, mock_db):
    assert auth_client.get("/mood/current").json() == {"mood": None}

    mock_db.rows["mood_entries"] = [
        {"id": "1", "user_id": TEST_USER_ID, "mood_id": "rainbow",
         "created_at": "2024-03-10T10:00:00+00:00"},
    ]
    current = auth_client.get("/mood/current").json()
    assert current["mood"]["id"] == "rainbow"
