"""
Shared fixtures: synthetic frames, fake landmark meshes and a fake CNN so
the suite runs without a camera, MediaPipe task file or Keras weights.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

# Add project root to path
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


def make_landmarks(points):
    """Normalized (x, y) pairs -> objects shaped like MediaPipe landmarks."""
    return [SimpleNamespace(x=x, y=y, z=0.0) for x, y in points]


def make_fake_model(interested_score):
    model = MagicMock()
    model.predict.return_value = np.array([[1.0 - interested_score, interested_score]],
                                          dtype=np.float32)
    return model


@pytest.fixture
def frame():
    return np.full((480, 640, 3), 120, dtype=np.uint8)


@pytest.fixture
def face_mesh():
    # spans x 0.25-0.50, y 0.25-0.50 -> 160x120 px on a 640x480 frame
    return make_landmarks([(0.25, 0.25), (0.5, 0.5), (0.3, 0.4)])
