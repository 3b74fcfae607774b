"""Tests for the session record store."""

import json

from playwriter.models import SessionRecord
from playwriter.store import SessionStore


class TestSessionStore:

    def test_round_trip(self, store):
        store.write(SessionRecord(port=9444, session="dev-server", started_at="2026-01-01T00:00:00.000Z"))

        record = store.read("dev-server")

        assert record == SessionRecord(port=9444, session="dev-server",
                                       started_at="2026-01-01T00:00:00.000Z")

    def test_default_location_is_under_cwd(self, store, isolated_env):
        store.write(SessionRecord(port=1234, session="default"))
        assert (isolated_env / "tmp" / "playwriter" / "default.json").exists()

    def test_file_shape(self, store):
        store.write(SessionRecord(port=9222, session="electron", external=True))

        data = json.loads(store.path_for("electron").read_text())

        assert data["port"] == 9222
        assert data["session"] == "electron"
        assert data["external"] is True
        assert data["startedAt"].endswith("Z")

    def test_owned_session_omits_external(self, store):
        store.write(SessionRecord(port=9222, session="default"))
        assert "external" not in json.loads(store.path_for("default").read_text())

    def test_missing_is_none(self, store):
        assert store.read("nope") is None

    def test_corrupt_file_is_none(self, store):
        path = store.path_for("broken")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json")
        assert store.read("broken") is None

    def test_wrong_shape_is_none(self, store):
        path = store.path_for("odd")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"session": "odd"}))
        assert store.read("odd") is None

        path.write_text(json.dumps([1, 2, 3]))
        assert store.read("odd") is None

    def test_write_replaces_previous_record(self, store):
        store.write(SessionRecord(port=1, session="default"))
        store.write(SessionRecord(port=2, session="default"))
        assert store.read("default").port == 2

    def test_clear(self, store):
        store.write(SessionRecord(port=1, session="default"))
        store.clear("default")
        assert store.read("default") is None
        store.clear("default")  # idempotent

    def test_custom_state_dir(self, tmp_path):
        store = SessionStore(tmp_path / "states")
        store.write(SessionRecord(port=5, session="x"))
        assert (tmp_path / "states" / "x.json").exists()
