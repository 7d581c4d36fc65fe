# ------------------------------------------------
# CONFIGURATION
# Override any path or credential through the environment
# ------------------------------------------------
import logging
import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Models
CLASSIFIER_MODEL_PATH = os.environ.get(
    "ENGAGEMENT_MODEL_PATH", os.path.join(BASE_DIR, "model", "engagement_cnn.keras")
)
LANDMARKER_MODEL_PATH = os.environ.get(
    "LANDMARKER_MODEL_PATH", os.path.join(BASE_DIR, "model", "face_landmarker.task")
)
LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/1/face_landmarker.task"
)

# Detection / classification
MAX_FACES = 20
FACE_PADDING = 20                # px added around the landmark extent
CLASSIFIER_INPUT_SIZE = 48       # CNN takes 48x48 grayscale
INTEREST_THRESHOLD = 0.5
INTERESTED_INDEX = 1             # output column of the "interested" class
CLASS_LABELS = ("Not interested", "Interested")

# Colors (BGR)
COLOR_INTERESTED = (128, 222, 74)        # #4ade80
COLOR_NOT_INTERESTED = (113, 113, 248)   # #f87171
COLOR_LABEL_TEXT = (255, 255, 255)

# Aggregation
SUMMARY_INTERVAL_SECONDS = 60
TIMESTAMP_FORMAT = "%H:%M:%S"

# Capture
CAMERA_INDEX = int(os.environ.get("CAMERA_INDEX", 0))
VIDEO_SKIP_FRAMES = 3

# Firestore
FIREBASE_CREDENTIALS = os.environ.get("FIREBASE_CREDENTIALS")
SESSIONS_COLLECTION = "sessions"
TIMELINE_COLLECTION = "timeline"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def configure_logging(level=None):
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
