"""Tests for QR marker detection and geo URI parsing."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from findfish.events.marker import QREvent, parse_geo_coordinates, parse_geo_uri
from tests.conftest import StubQRDetector, make_frame, marked

GEO = "geo:48.2,16.3?site=dock4&camera=left"


class TestParseGeoUri:
    def test_keeps_well_formed_pairs(self):
        """Malformed fragments are dropped, the rest survive."""
        values = parse_geo_uri("geo:1.0,2.0?key1=val1&garbage&key2=val2")
        assert values == {"key1": "val1", "key2": "val2"}

    def test_no_query_gives_empty(self):
        assert parse_geo_uri("geo:1.0,2.0") == {}

    def test_empty_key_dropped(self):
        assert parse_geo_uri("geo:1,2?=x&a=1") == {"a": "1"}

    def test_value_may_contain_equals(self):
        """Only the first '=' separates key and value."""
        assert parse_geo_uri("geo:1,2?expr=a=b") == {"expr": "a=b"}

    def test_percent_decoding(self):
        assert parse_geo_uri("geo:1,2?name=Dock%204") == {"name": "Dock 4"}

    def test_not_a_geo_uri_does_not_raise(self):
        assert parse_geo_uri("hello world") == {}


class TestParseGeoCoordinates:
    def test_lat_lon(self):
        assert parse_geo_coordinates("geo:1.5,-2.25?x=1") == (1.5, -2.25)

    def test_with_altitude_and_params(self):
        assert parse_geo_coordinates("geo:1,2,3;u=10") == (1.0, 2.0, 3.0)

    def test_garbage(self):
        assert parse_geo_coordinates("geo:north,south") is None
        assert parse_geo_coordinates("http://example.com") is None


class TestQREvent:
    def test_not_detected_without_marker(self):
        event = QREvent(StubQRDetector(GEO))
        event.start_event(0)
        for i in range(5):
            event.check_frame(make_frame(), i)
        event.end_event(4)
        assert not event.detected_qr()
        assert event.get_as_json()["detected"] is False

    def test_detection_latches(self):
        """Frames without a marker after a detection never reset it."""
        detector = StubQRDetector(GEO)
        event = QREvent(detector)
        event.start_event(0)
        event.check_frame(make_frame(), 0)
        event.check_frame(marked(make_frame(), 7), 1)
        assert event.detected_qr()

        for i in range(2, 10):
            event.check_frame(make_frame(), i)
            assert event.detected_qr()

        event.end_event(9)
        record = event.get_as_json()
        assert record["detected"] is True
        assert record["detected_frame"] == 1
        assert record["geo"] == {"site": "dock4", "camera": "left"}
        assert record["coordinates"] == [48.2, 16.3]

    def test_short_circuits_after_detection(self):
        detector = StubQRDetector(GEO)
        event = QREvent(detector)
        event.start_event(0)
        event.check_frame(marked(make_frame(), 7), 0)
        for i in range(1, 6):
            event.check_frame(make_frame(), i)
        assert detector.calls == 1

    def test_decoder_error_is_not_fatal(self):
        """A corrupt decode counts as no marker on that frame."""
        detector = StubQRDetector(GEO, raise_value=9)
        event = QREvent(detector)
        event.start_event(0)
        event.check_frame(marked(make_frame(), 9), 0)
        assert not event.detected_qr()
        event.check_frame(marked(make_frame(), 7), 1)
        assert event.detected_qr()

    def test_non_geo_text_still_detected(self):
        event = QREvent(StubQRDetector("hello"))
        event.start_event(0)
        event.check_frame(marked(make_frame(), 7), 0)
        event.end_event(0)
        record = event.get_as_json()
        assert record["detected"] is True
        assert record["geo"] == {}
        assert record["coordinates"] is None

    def test_no_detection_after_end(self):
        detector = StubQRDetector(GEO)
        event = QREvent(detector)
        event.start_event(0)
        event.check_frame(make_frame(), 0)
        event.end_event(0)

        event.check_frame(marked(make_frame(), 7), 1)
        assert not event.detected_qr()
        assert event.get_as_json()["detected"] is False
        assert detector.calls == 1

    def test_range_and_record_type(self):
        event = QREvent(StubQRDetector(GEO))
        event.start_event(3)
        event.end_event(12)
        assert event.get_range() == (3, 12)
        assert event.get_as_json()["type"] == "qr"

    @pytest.mark.skipif(not hasattr(cv2, "QRCodeEncoder"),
                        reason="OpenCV build without QR encoder")
    def test_real_decoder_on_generated_code(self):
        """End to end with OpenCV's own encoder and detector."""
        code = cv2.QRCodeEncoder.create().encode(GEO)
        code = cv2.resize(code, None, fx=8, fy=8, interpolation=cv2.INTER_NEAREST)
        code = cv2.copyMakeBorder(code, 40, 40, 40, 40, cv2.BORDER_CONSTANT, value=255)
        frame = cv2.cvtColor(code, cv2.COLOR_GRAY2BGR)

        event = QREvent()
        event.start_event(0)
        event.check_frame(np.zeros_like(frame), 0)
        event.check_frame(frame, 1)
        event.end_event(1)

        assert event.detected_qr()
        assert event.geo == {"site": "dock4", "camera": "left"}
