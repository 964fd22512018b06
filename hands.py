import logging
import os

import cv2
import mediapipe as mp
from mediapipe.tasks import python as mp_tasks
from mediapipe.tasks.python import vision

from hand_signal import Detection, DetectedHand

logger = logging.getLogger(__name__)

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)
DEFAULT_MODEL_PATH = "models/hand_landmarker.task"


class DetectorUnavailableError(RuntimeError):
    pass


class Hands:
    """
    MediaPipe HandLandmarker wrapper (VIDEO running mode).

    Lifecycle:
      hands = Hands(model_path)
      hands.initialize()
      hands.detect(frame_bgr, timestamp_ms) -> Detection
      hands.close()

    Each DetectedHand carries 21 normalized (x, y, z) landmarks and the
    top-1 handedness label ("Left" / "Right").
    """

    def __init__(self, model_path=DEFAULT_MODEL_PATH, max_hands=2, det_conf=0.5, presence_conf=0.5, track_conf=0.5):
        self.model_path = model_path
        self.max_hands = int(max_hands)
        self.det_conf = float(det_conf)
        self.presence_conf = float(presence_conf)
        self.track_conf = float(track_conf)
        self._landmarker = None
        self._last_ts = -1

    @property
    def ready(self) -> bool:
        return self._landmarker is not None

    def initialize(self):
        if self._landmarker is not None:
            return

        if not os.path.isfile(self.model_path):
            raise DetectorUnavailableError(
                f"Hand landmarker model not found at {self.model_path}. Download from: {MODEL_URL}"
            )

        options = vision.HandLandmarkerOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=self.model_path),
            running_mode=vision.RunningMode.VIDEO,
            num_hands=self.max_hands,
            min_hand_detection_confidence=self.det_conf,
            min_hand_presence_confidence=self.presence_conf,
            min_tracking_confidence=self.track_conf,
        )
        try:
            self._landmarker = vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise DetectorUnavailableError(f"Hand landmarker failed to load: {e}") from e
        logger.info("hand landmarker ready (%s)", self.model_path)

    def detect(self, frame_bgr, timestamp_ms) -> Detection:
        if self._landmarker is None:
            raise DetectorUnavailableError("detect() called before initialize()")

        # VIDEO mode rejects non-increasing timestamps
        ts = int(timestamp_ms)
        if ts <= self._last_ts:
            ts = self._last_ts + 1
        self._last_ts = ts

        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        res = self._landmarker.detect_for_video(image, ts)

        out = Detection()
        if not res.hand_landmarks:
            return out

        for lms, handedness in zip(res.hand_landmarks, res.handedness):
            pts = [(lm.x, lm.y, lm.z) for lm in lms]
            label = handedness[0].category_name if handedness else ""
            out.hands.append(DetectedHand(landmarks=pts, handedness=label))
        return out

    def close(self):
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
