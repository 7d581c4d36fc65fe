"""
Engagement classifier tests with a fake Keras model.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from concentration import EngagementClassifier, analyze_frame, analyze_video, preprocess
from conftest import make_fake_model, make_landmarks
from errors import ModelLoadError


# ─── Preprocessing ────────────────────────────────────────────

def test_preprocess_shape_and_scale(frame):
    face = preprocess(frame, (140, 100, 200, 160))
    assert face.shape == (1, 48, 48, 1)
    assert face.dtype == np.float32
    assert np.allclose(face, 120 / 255.0)


def test_preprocess_uses_plain_channel_mean():
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    frame[:, :] = (30, 60, 90)
    face = preprocess(frame, (10, 10, 50, 50))
    assert np.allclose(face, 60 / 255.0)


def test_preprocess_clips_box_to_frame(frame):
    # box runs past the bottom-right corner
    face = preprocess(frame, (600, 440, 200, 200))
    assert face.shape == (1, 48, 48, 1)


def test_preprocess_empty_crop_returns_none(frame):
    assert preprocess(frame, (700, 500, 50, 50)) is None


# ─── Classification ───────────────────────────────────────────

def test_interested_above_threshold(frame):
    clf = EngagementClassifier(model=make_fake_model(0.7))
    result = clf.classify(frame, (140, 100, 200, 160))
    assert result.interested
    assert result.score == pytest.approx(0.7)
    clf.model.predict.assert_called_once()


def test_threshold_is_strict(frame):
    clf = EngagementClassifier(model=make_fake_model(0.5))
    assert not clf.classify(frame, (140, 100, 200, 160)).interested
    assert not clf.is_interested(frame, (140, 100, 200, 160))


def test_empty_crop_is_not_interested_without_model_call(frame):
    clf = EngagementClassifier(model=make_fake_model(0.9))
    result = clf.classify(frame, (700, 500, 50, 50))
    assert not result.interested
    clf.model.predict.assert_not_called()


def test_load_missing_model_raises(tmp_path):
    clf = EngagementClassifier(model_path=str(tmp_path / "missing.keras"))
    with pytest.raises(ModelLoadError):
        clf.load()
    assert not clf.loaded


# ─── Frame analysis ───────────────────────────────────────────

def test_analyze_frame_counts_each_face(frame, face_mesh):
    other = make_landmarks([(0.6, 0.2), (0.8, 0.45)])
    clf = EngagementClassifier(model=make_fake_model(0.8))

    analysis = analyze_frame(frame, [face_mesh, other], clf)

    assert analysis.person_count == 2
    assert analysis.interested_count == 2
    assert analysis.uninterested_count == 0
    assert analysis.faces[0].box == pytest.approx((140.0, 100.0, 200.0, 160.0))


def test_analyze_frame_without_model_counts_unlabelled_faces(frame, face_mesh):
    analysis = analyze_frame(frame, [face_mesh], EngagementClassifier(model=None))
    assert analysis.person_count == 1
    assert analysis.interested_count == 0
    assert not analysis.faces[0].classified


def test_analyze_frame_no_faces(frame):
    analysis = analyze_frame(frame, [], EngagementClassifier(model=make_fake_model(0.9)))
    assert analysis.person_count == 0


def test_preprocess_interpolates_in_float():
    frame = np.zeros((2, 2, 3), dtype=np.uint8)
    frame[0, 0] = 1
    face = preprocess(frame, (0, 0, 2, 2), size=3)
    scaled = face * 255.0
    # bilinear values between 0 and 1 survive instead of being rounded away
    assert np.any((scaled > 1e-3) & (scaled < 1 - 1e-3))


# ─── Recorded video ───────────────────────────────────────────

def _fake_detector(face_mesh):
    detector = MagicMock()
    detector.detect.return_value = [face_mesh]
    return detector


def test_analyze_video_buckets_by_video_time(face_mesh):
    fps = 3
    frames = [np.full((480, 640, 3), 120, dtype=np.uint8)] * (130 * fps)
    detector = _fake_detector(face_mesh)
    clf = EngagementClassifier(model=make_fake_model(0.8))

    history = analyze_video(frames, fps, detector, clf, skip_frames=3)

    # one analyzed frame per second of video
    assert detector.detect.call_count == 130
    stamps = [c.args[1] for c in detector.detect.call_args_list]
    assert stamps[:3] == [0.0, 1000.0, 2000.0]

    assert [e.timestamp for e in history] == ["00:02:09", "00:02:00", "00:01:00"]
    assert all(e.person_count == 1 and e.interested == "100%" for e in history)


def test_analyze_video_calls_back_for_every_frame(face_mesh):
    frames = [np.zeros((480, 640, 3), dtype=np.uint8)] * 7
    seen = []
    analyze_video(frames, 30, _fake_detector(face_mesh), EngagementClassifier(model=make_fake_model(0.2)),
                  skip_frames=3, on_frame=lambda i, f, a: seen.append((i, a is not None)))
    assert [i for i, _ in seen] == list(range(7))
    assert all(has_analysis for _, has_analysis in seen)


def test_analyze_video_empty_clip():
    history = analyze_video([], 30, MagicMock(), EngagementClassifier(model=None))
    assert len(history) == 0
