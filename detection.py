# ------------------------------------------------
# FACE DETECTION USING MEDIAPIPE FACE LANDMARKER
# ------------------------------------------------
# finds every face in the frame and turns its landmark mesh into a box
import logging
import os
import urllib.request

import cv2

import config
from errors import ModelLoadError

_log = logging.getLogger(__name__)


def ensure_landmarker_model(path=config.LANDMARKER_MODEL_PATH, url=config.LANDMARKER_MODEL_URL):
    """Download the FaceLandmarker task file if it is not on disk yet."""
    if os.path.exists(path):
        return path

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    _log.info("Downloading face landmarker model to %s", path)
    try:
        urllib.request.urlretrieve(url, path)
    except OSError as e:
        raise ModelLoadError(f"Could not download face landmarker model: {e}") from e
    return path


def face_box(landmarks, frame_w, frame_h, padding=config.FACE_PADDING):
    """
    Bounding box around a landmark mesh.

    Returns:
        (x, y, w, h) in pixels. x and y are clamped at 0, w and h are not
        clamped to the frame.
    """
    min_x, min_y = float(frame_w), float(frame_h)
    max_x, max_y = 0.0, 0.0
    for lm in landmarks:
        px = lm.x * frame_w
        py = lm.y * frame_h
        min_x = min(min_x, px)
        max_x = max(max_x, px)
        min_y = min(min_y, py)
        max_y = max(max_y, py)

    x = max(0.0, min_x - padding)
    y = max(0.0, min_y - padding)
    w = (max_x - min_x) + padding * 2
    h = (max_y - min_y) + padding * 2
    return x, y, w, h


class FaceLandmarkDetector:
    def __init__(self, model_path=config.LANDMARKER_MODEL_PATH, max_faces=config.MAX_FACES):
        self.model_path = model_path
        self.max_faces = max_faces
        self._landmarker = None
        self._last_timestamp_ms = -1

    @property
    def loaded(self):
        return self._landmarker is not None

    def load(self):
        from mediapipe.tasks import python
        from mediapipe.tasks.python import vision

        path = ensure_landmarker_model(self.model_path)
        try:
            options = vision.FaceLandmarkerOptions(
                base_options=python.BaseOptions(model_asset_path=path),
                running_mode=vision.RunningMode.VIDEO,
                num_faces=self.max_faces,
                output_face_blendshapes=True,
            )
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise ModelLoadError(f"Could not create face landmarker: {e}") from e

        _log.info("Face landmarker loaded (max %d faces)", self.max_faces)
        return self

    def detect(self, frame, timestamp_ms):
        """
        Returns:
            list of landmark lists, one per detected face (normalized x, y)
        """
        if self._landmarker is None:
            raise RuntimeError("FaceLandmarkDetector.load() has not been called")

        import mediapipe as mp

        # VIDEO mode rejects timestamps that do not increase
        ts = int(timestamp_ms)
        if ts <= self._last_timestamp_ms:
            ts = self._last_timestamp_ms + 1
        self._last_timestamp_ms = ts

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        result = self._landmarker.detect_for_video(image, ts)
        return list(result.face_landmarks or [])

    def close(self):
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None

    def __enter__(self):
        return self.load()

    def __exit__(self, *args):
        self.close()
