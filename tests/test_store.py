"""File-backed hand-off store."""

import json

from receiptserver import store


def test_save_keeps_only_handoff_fields(file_store):
    rec = store.save_handoff({"html": "<p/>", "subject": "S", "junk": 1, "fromName": None})

    assert rec["html"] == "<p/>"
    assert rec["subject"] == "S"
    assert "junk" not in rec
    assert "fromName" not in rec
    assert isinstance(rec["updatedAt"], int)
    on_disk = json.loads(file_store.read_text(encoding="utf-8"))
    assert on_disk[store.HANDOFF_KEY]["subject"] == "S"


def test_save_overwrites_same_key():
    store.save_handoff({"html": "<p>one</p>"})
    store.save_handoff({"html": "<p>two</p>", "platform": "fanbasis"})

    item = store.load_handoff()
    assert item["html"] == "<p>two</p>"
    assert item["platform"] == "fanbasis"


def test_keys_are_independent():
    store.save_handoff({"html": "a"}, key="first")
    store.save_handoff({"html": "b"}, key="second")

    assert store.load_handoff("first")["html"] == "a"
    assert store.clear_handoff("first") is True
    assert store.load_handoff("first") is None
    assert store.load_handoff("second")["html"] == "b"


def test_missing_html_defaults_to_empty():
    assert store.save_handoff({})["html"] == ""
