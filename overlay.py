# ------------------------------------------------
# OVERLAY
# Boxes and labels painted onto the frame
# ------------------------------------------------
import cv2

import config
from fusion import round_half_up

LABEL_HEIGHT = 24
LABEL_PAD_X = 6
FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_SCALE = 0.6
FONT_THICKNESS = 2


def label_and_color(interested):
    if interested:
        return config.CLASS_LABELS[1], config.COLOR_INTERESTED
    return config.CLASS_LABELS[0], config.COLOR_NOT_INTERESTED


def draw_face(frame, box, interested):
    """Draws the box and label on the frame."""
    x, y, w, h = (round_half_up(v) for v in box)
    label, color = label_and_color(interested)

    cv2.rectangle(frame, (x, y), (x + w, y + h), color, 3)

    (text_w, _), _ = cv2.getTextSize(label, FONT, FONT_SCALE, FONT_THICKNESS)
    cv2.rectangle(frame, (x, y - LABEL_HEIGHT), (x + text_w + 2 * LABEL_PAD_X, y), color, -1)
    cv2.putText(frame, label, (x + LABEL_PAD_X, y - 6), FONT, FONT_SCALE,
                config.COLOR_LABEL_TEXT, FONT_THICKNESS)
    return frame


def draw_faces(frame, analysis):
    for face in analysis.faces:
        if face.classified:
            draw_face(frame, face.box, face.interested)
    return frame
