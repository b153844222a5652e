import json
from pathlib import Path

from skyview.models import SavedLocation
from skyview.storage import SubscriberStore


def test_add_normalizes_and_persists_subscribers(tmp_path: Path):
    path = tmp_path / "data" / "subscribers.json"
    store = SubscriberStore(path)

    result = store.add("  Alice@Example.COM ", unit="c", timezone="America/Chicago")

    assert result.ok is True
    assert result.message == "Subscribed"
    saved = store.list()
    assert len(saved) == 1
    subscriber = saved[0]
    assert subscriber.email == "alice@example.com"
    assert subscriber.unit == "C"
    assert subscriber.timezone == "America/Chicago"
    assert len(subscriber.token) == 32
    assert subscriber.location is None
    assert json.loads(path.read_text())[0]["email"] == "alice@example.com"


def test_invalid_email_is_rejected(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.json")

    result = store.add("not-an-email")

    assert result.ok is False
    assert result.message == "Invalid email"
    assert store.list() == []


def test_existing_subscriber_is_updated_in_place(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.json")
    store.add("bob@example.com")
    token = store.list()[0].token

    location = SavedLocation(name="Denver, CO", latitude=39.7392, longitude=-104.9903)
    result = store.add("BOB@example.com", location=location, timezone="America/Denver")

    assert result.message == "Already subscribed"
    subscribers = store.list()
    assert len(subscribers) == 1
    assert subscribers[0].location == location
    assert subscribers[0].timezone == "America/Denver"
    assert subscribers[0].unit == "F"
    assert subscribers[0].token == token


def test_defaults_for_unknown_unit_and_timezone(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.json")

    store.add("carol@example.com", unit="K", timezone="Mars/Olympus_Mons")

    subscriber = store.list()[0]
    assert subscriber.unit == "F"
    assert subscriber.timezone == "America/New_York"


def test_remove_by_token(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.json")
    store.add("dave@example.com")
    store.add("erin@example.com")
    token = store.list()[0].token

    assert store.remove_by_token("missing") is False
    assert store.remove_by_token(token) is True
    assert [entry.email for entry in store.list()] == ["erin@example.com"]


def test_update_replaces_matching_subscriber(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.json")
    store.add("frank@example.com")
    subscriber = store.list()[0]
    subscriber.last_sent_on = "2024-07-04"

    assert store.update(subscriber) is True
    assert store.list()[0].last_sent_on == "2024-07-04"

    subscriber.email = "nobody@example.com"
    assert store.update(subscriber) is False


def test_legacy_email_list_is_migrated(tmp_path: Path):
    path = tmp_path / "subscribers.json"
    path.write_text(json.dumps(["Grace@Example.com", "heidi@example.com"]))
    store = SubscriberStore(path)

    subscribers = store.list()

    assert [entry.email for entry in subscribers] == ["grace@example.com", "heidi@example.com"]
    assert all(entry.unit == "F" and entry.timezone == "America/New_York" for entry in subscribers)
    assert all(len(entry.token) == 32 for entry in subscribers)
    persisted = json.loads(path.read_text())
    assert persisted[0]["token"] == subscribers[0].token


def test_partial_records_get_defaults(tmp_path: Path):
    path = tmp_path / "subscribers.json"
    path.write_text(
        json.dumps(
            [{"email": "ivan@example.com", "location": {"name": "Austin, TX", "latitude": 30.27, "longitude": -97.74}}]
        )
    )
    store = SubscriberStore(path)

    subscriber = store.list()[0]

    assert subscriber.location == SavedLocation(name="Austin, TX", latitude=30.27, longitude=-97.74)
    assert subscriber.unit == "F"
    assert subscriber.token
    assert subscriber.subscribed_at


def test_non_list_document_is_reset(tmp_path: Path):
    path = tmp_path / "subscribers.json"
    path.write_text(json.dumps({"unexpected": True}))
    store = SubscriberStore(path)

    assert store.list() == []
    assert json.loads(path.read_text()) == []


def test_configured_default_timezone_applies_to_new_and_migrated_entries(tmp_path: Path):
    path = tmp_path / "subscribers.json"
    path.write_text(json.dumps(["legacy@example.com"]))
    store = SubscriberStore(path, default_timezone="America/Los_Angeles")

    store.add("fresh@example.com", timezone="Not/AZone")

    zones = {subscriber.email: subscriber.timezone for subscriber in store.list()}
    assert zones == {"legacy@example.com": "America/Los_Angeles", "fresh@example.com": "America/Los_Angeles"}
