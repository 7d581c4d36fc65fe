# --- START OF FILE concentration.py ---
import logging
import os

import cv2
import numpy as np

import config
from detection import face_box
from errors import ModelLoadError
from fusion import MinuteAggregator, SessionHistory, format_offset, record_summary, round_half_up
from session import FaceResult, FrameAnalysis

_log = logging.getLogger(__name__)


def preprocess(frame, box, size=config.CLASSIFIER_INPUT_SIZE):
    """
    Crop a face and shape it for the CNN.

    Returns:
        float32 array of shape (1, size, size, 1) scaled to 0-1,
        or None if the crop is empty
    """
    x, y, w, h = (round_half_up(v) for v in box)
    face_roi = frame[y:y + h, x:x + w]
    if face_roi.size == 0:
        return None

    # interpolate in float so the resized values are not truncated to uint8
    face_roi = cv2.resize(face_roi.astype("float32"), (size, size), interpolation=cv2.INTER_LINEAR)
    # plain channel mean, not luminance-weighted grayscale
    face_roi = face_roi.mean(axis=2) / 255.0
    return face_roi[np.newaxis, :, :, np.newaxis]


class EngagementClassifier:
    def __init__(self, model_path=config.CLASSIFIER_MODEL_PATH, threshold=config.INTEREST_THRESHOLD,
                 model=None):
        self.model_path = model_path
        self.threshold = threshold
        self.model = model

    @property
    def loaded(self):
        return self.model is not None

    def load(self):
        if not os.path.exists(self.model_path):
            raise ModelLoadError(f"Engagement model not found: {self.model_path}")

        import tensorflow as tf
        try:
            self.model = tf.keras.models.load_model(self.model_path)
        except (OSError, ValueError) as e:
            raise ModelLoadError(f"Could not load engagement model: {e}") from e

        _log.info("Engagement CNN loaded from %s", self.model_path)
        return self

    def predict_score(self, frame, box):
        """
        Returns:
            probability of the "interested" class, or None for an empty crop
        """
        face = preprocess(frame, box)
        if face is None:
            return None
        prediction = self.model.predict(face, verbose=0)
        return float(prediction[0][config.INTERESTED_INDEX])

    def is_interested(self, frame, box):
        score = self.predict_score(frame, box)
        return score is not None and score > self.threshold

    def classify(self, frame, box):
        score = self.predict_score(frame, box)
        if score is None:
            _log.debug("Empty face crop at %s", box)
            return FaceResult(box=box, interested=False, score=0.0)
        return FaceResult(box=box, interested=score > self.threshold, score=score)

    def close(self):
        self.model = None


def analyze_frame(frame, face_landmarks, classifier):
    """Boxes and classifies every detected face of one frame."""
    frame_h, frame_w = frame.shape[:2]
    analysis = FrameAnalysis()

    for landmarks in face_landmarks:
        box = face_box(landmarks, frame_w, frame_h)
        if classifier is None or not classifier.loaded:
            # still a person in view, just not labelled
            analysis.faces.append(FaceResult(box=box, interested=False, classified=False))
            continue
        analysis.faces.append(classifier.classify(frame, box))

    return analysis


def analyze_video(frames, fps, detector, classifier, skip_frames=config.VIDEO_SKIP_FRAMES,
                  on_frame=None):
    """
    Runs the pipeline over recorded frames, bucketing summaries by video time.

    Every `skip_frames`-th frame is analyzed. `on_frame(index, frame, analysis)`
    is called for every frame with the latest analysis (None before the first).

    Returns:
        SessionHistory, newest first, including the final partial minute
    """
    history = SessionHistory()
    aggregator = MinuteAggregator(start=0.0)
    position = 0.0
    last_analysis = None

    for index, frame in enumerate(frames):
        position = index / fps
        if index % skip_frames == 0:
            faces = detector.detect(frame, position * 1000)
            last_analysis = analyze_frame(frame, faces, classifier)
            aggregator.add(last_analysis)
            if aggregator.due(position):
                record_summary(history, aggregator, position, label=format_offset(position))

        if on_frame is not None:
            on_frame(index, frame, last_analysis)

    record_summary(history, aggregator, position, label=format_offset(position))
    return history
