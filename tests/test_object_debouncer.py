"""
Tests for ObjectFlagDebouncer and the paper region heuristic
"""

import numpy as np
import pytest

from examguard.proctor.detectors import ObjectFlagDebouncer, bright_fraction, is_paper_region
from examguard.proctor.events import EventKind, FaceBox


def phone(score=0.8, box=(10, 10, 50, 80)):
    return {"label": "cell phone", "score": score, "bbox": list(box)}


class TestFlagging:
    """Tests for which detections get flagged"""

    def test_prohibited_item_flagged(self):
        debouncer = ObjectFlagDebouncer()
        events = debouncer.update(0, [phone()])

        assert len(events) == 1
        event = events[0]
        assert event.type is EventKind.OBJECT_DETECTED
        assert event.detail["object"] == "cell phone"
        assert event.detail["model_class"] == "cell phone"
        assert event.detail["score"] == 0.8
        assert event.detail["box"] == [10, 10, 50, 80]

    def test_label_match_is_case_insensitive(self):
        debouncer = ObjectFlagDebouncer()
        events = debouncer.update(0, [{"label": "Laptop", "score": 0.6, "bbox": [0, 0, 10, 10]}])

        assert events[0].detail["object"] == "laptop"
        assert events[0].detail["model_class"] == "Laptop"

    def test_low_confidence_item_not_flagged_without_frame(self):
        debouncer = ObjectFlagDebouncer()
        assert debouncer.update(0, [phone(score=0.44)]) == []

    def test_unlisted_class_ignored(self):
        debouncer = ObjectFlagDebouncer()
        assert debouncer.update(0, [{"label": "cup", "score": 0.99, "bbox": [0, 0, 10, 10]}]) == []

    def test_score_is_rounded(self):
        debouncer = ObjectFlagDebouncer()
        events = debouncer.update(0, [phone(score=0.876)])
        assert events[0].detail["score"] == 0.88


class TestDebounce:
    """Tests for per-reason debouncing"""

    def test_same_reason_suppressed_within_window(self):
        debouncer = ObjectFlagDebouncer()
        assert len(debouncer.update(0, [phone()])) == 1
        assert debouncer.update(4000, [phone()]) == []
        assert debouncer.update(5000, [phone()]) == []
        assert len(debouncer.update(5001, [phone()])) == 1

    def test_suppressed_detection_does_not_extend_window(self):
        debouncer = ObjectFlagDebouncer()
        debouncer.update(0, [phone()])
        debouncer.update(4000, [phone()])

        assert debouncer.last_emitted["cell phone"] == 0

    def test_different_reasons_independent(self):
        debouncer = ObjectFlagDebouncer()
        book = {"label": "book", "score": 0.9, "bbox": [100, 100, 50, 50]}

        first = debouncer.update(0, [phone()])
        second = debouncer.update(100, [book])

        assert [e.detail["object"] for e in first + second] == ["cell phone", "book"]

    def test_same_reason_twice_in_one_batch(self):
        debouncer = ObjectFlagDebouncer()
        events = debouncer.update(0, [phone(), phone(box=(200, 200, 40, 40))])
        assert len(events) == 1

    def test_reset_forgets_emissions(self):
        debouncer = ObjectFlagDebouncer()
        debouncer.update(0, [phone()])
        debouncer.reset()
        assert len(debouncer.update(100, [phone()])) == 1


class TestHeuristicRescue:
    """Low-confidence detections over bright regions"""

    @pytest.fixture
    def paper_frame(self):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        frame[100:300, 100:300] = 255
        return frame

    def test_rescued_as_paper(self, paper_frame):
        debouncer = ObjectFlagDebouncer()
        detection = {"label": "cup", "score": 0.3, "bbox": [100, 100, 200, 200]}

        events = debouncer.update(0, [detection], paper_frame)

        assert len(events) == 1
        assert events[0].detail["object"] == "paper/note (heuristic)"
        assert events[0].detail["model_class"] == "cup"

    def test_below_rescue_floor(self, paper_frame):
        debouncer = ObjectFlagDebouncer()
        detection = {"label": "cup", "score": 0.2, "bbox": [100, 100, 200, 200]}
        assert debouncer.update(0, [detection], paper_frame) == []

    def test_dark_region_not_rescued(self, paper_frame):
        debouncer = ObjectFlagDebouncer()
        detection = {"label": "book", "score": 0.3, "bbox": [400, 300, 100, 100]}
        assert debouncer.update(0, [detection], paper_frame) == []

    def test_heuristic_reason_debounced_separately(self, paper_frame):
        debouncer = ObjectFlagDebouncer()
        paper = {"label": "book", "score": 0.3, "bbox": [100, 100, 200, 200]}
        book = {"label": "book", "score": 0.9, "bbox": [400, 300, 100, 100]}

        events = debouncer.update(0, [paper, book], paper_frame)

        assert [e.detail["object"] for e in events] == ["paper/note (heuristic)", "book"]

    def test_custom_region_classifier(self):
        calls = []

        def always_paper(frame, box):
            calls.append(box)
            return True

        debouncer = ObjectFlagDebouncer(region_classifier=always_paper)
        events = debouncer.update(0, [{"label": "cup", "score": 0.3, "bbox": [1, 2, 3, 4]}], np.zeros((1, 1, 3)))

        assert len(events) == 1
        assert calls == [FaceBox(1, 2, 3, 4)]


class TestMalformedDetections:
    """Malformed entries are skipped without aborting the batch"""

    def test_bad_entries_skipped(self, caplog):
        debouncer = ObjectFlagDebouncer()
        batch = [
            {"label": "cell phone", "score": "?", "bbox": [0, 0, 1, 1]},
            {"label": "laptop", "score": 0.9},
            None,
            phone()
        ]

        with caplog.at_level("WARNING"):
            events = debouncer.update(0, batch)

        assert len(events) == 1
        assert events[0].detail["object"] == "cell phone"
        assert caplog.text.count("Skipping object detection") == 3

    def test_classifier_error_skips_entry(self):
        def broken(frame, box):
            raise RuntimeError("boom")

        debouncer = ObjectFlagDebouncer(region_classifier=broken)
        events = debouncer.update(0, [{"label": "cup", "score": 0.3, "bbox": [0, 0, 1, 1]}, phone()], np.zeros((4, 4, 3)))

        assert [e.detail["object"] for e in events] == ["cell phone"]
        assert "paper/note (heuristic)" not in debouncer.last_emitted


class TestRegionHeuristic:
    """Tests for the bright-region test"""

    def test_white_region_is_paper(self):
        frame = np.full((100, 100, 3), 255, dtype=np.uint8)
        assert bright_fraction(frame, FaceBox(0, 0, 100, 100)) == 1.0
        assert is_paper_region(frame, FaceBox(10, 10, 50, 50))

    def test_black_region_is_not(self):
        frame = np.zeros((100, 100, 3), dtype=np.uint8)
        assert bright_fraction(frame, FaceBox(0, 0, 100, 100)) == 0.0
        assert not is_paper_region(frame, FaceBox(0, 0, 100, 100))

    def test_fraction_must_exceed_minimum(self):
        """Exactly 30% bright is not enough"""
        frame = np.zeros((10, 100, 3), dtype=np.uint8)
        frame[:, :30] = 255
        box = FaceBox(0, 0, 100, 10)

        assert bright_fraction(frame, box) == pytest.approx(0.30)
        assert not is_paper_region(frame, box)

        frame[:, :31] = 255
        assert is_paper_region(frame, box)

    def test_box_clamped_to_frame(self):
        frame = np.full((50, 50, 3), 255, dtype=np.uint8)
        assert bright_fraction(frame, FaceBox(-20, -20, 100, 100)) == 1.0

    def test_box_outside_frame(self):
        frame = np.full((50, 50, 3), 255, dtype=np.uint8)
        assert bright_fraction(frame, FaceBox(60, 60, 10, 10)) == 0.0

    def test_missing_or_invalid_frame(self):
        box = FaceBox(0, 0, 10, 10)
        assert bright_fraction(None, box) == 0.0
        assert bright_fraction(np.zeros((10, 10), dtype=np.uint8), box) == 0.0

    def test_channel_order(self):
        """Channel 0 is weighted as blue for BGR frames and as red for RGB frames"""
        frame = np.zeros((10, 10, 3), dtype=np.uint8)
        frame[..., 0] = 255  # blue in BGR, red in RGB
        box = FaceBox(0, 0, 10, 10)

        assert bright_fraction(frame, box, channel_order="BGR", luminance_min=0.05) == 1.0
        assert bright_fraction(frame, box, channel_order="BGR", luminance_min=0.1) == 0.0
        assert bright_fraction(frame, box, channel_order="RGB", luminance_min=0.2) == 1.0

    def test_sampling_cap(self):
        frame = np.full((200, 200, 3), 255, dtype=np.uint8)
        assert bright_fraction(frame, FaceBox(0, 0, 200, 200), max_samples=10) == 1.0

    def test_stride_rounds_up(self):
        """3999 pixels with a 2000-sample cap are read every second pixel"""
        frame = np.zeros((1, 3999, 3), dtype=np.uint8)
        frame[:, ::2] = 255

        assert bright_fraction(frame, FaceBox(0, 0, 3999, 1)) == 1.0
