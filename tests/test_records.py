"""Tests for JSON record persistence."""

from __future__ import annotations

import json

import pytest

from findfish.intake.pairing import record_token
from findfish.recording.records import RecordStore


class TestRecordStore:
    def test_write_names_record_after_video(self, tmp_path):
        store = RecordStore(str(tmp_path / "records"))
        path = store.write("static/videos/cam1_0001.mp4", {"video": "cam1_0001.mp4"})

        assert path.name == "DE_cam1_0001.json"
        assert json.loads(path.read_text()) == {"video": "cam1_0001.mp4"}

    def test_token_round_trips_to_video_name(self, tmp_path):
        """The record name's token matches the video it came from."""
        store = RecordStore(str(tmp_path))
        path = store.write("v/GOPR0042.MP4", {})
        assert record_token(path.name, "DE_") in "GOPR0042.MP4"

    def test_overwrite(self, tmp_path):
        store = RecordStore(str(tmp_path))
        store.write("v/a.mp4", {"n": 1})
        store.write("v/a.mp4", {"n": 2})
        assert store.load("DE_a.json") == {"n": 2}
        assert store.list_records() == ["DE_a.json"]

    def test_no_temp_files_left(self, tmp_path):
        store = RecordStore(str(tmp_path))
        store.write("v/a.mp4", {"n": 1})
        assert [p.name for p in tmp_path.iterdir()] == ["DE_a.json"]

    def test_load_unknown(self, tmp_path):
        store = RecordStore(str(tmp_path))
        with pytest.raises(FileNotFoundError):
            store.load("DE_nope.json")

    def test_load_rejects_path_escape(self, tmp_path):
        (tmp_path / "secret.json").write_text("{}")
        store = RecordStore(str(tmp_path / "records"))
        (tmp_path / "records").mkdir()
        with pytest.raises(FileNotFoundError):
            store.load("../secret.json")

    def test_list_missing_dir(self, tmp_path):
        assert RecordStore(str(tmp_path / "missing")).list_records() == []
