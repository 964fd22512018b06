"""
Detection loop.

A daemon thread pulls camera frames, runs the detector only on frames with a
new timestamp, conditions the result with HandSignalProcessor and publishes
the HandFrame into a single-slot cell. The render loop reads the latest
snapshot whenever it likes; it may see the same one for several ticks.
"""

import logging
import threading
import time

import cv2

from hand_signal import HandFrame, HandSignalProcessor

logger = logging.getLogger(__name__)

CAMERA_WIDTH = 1280
CAMERA_HEIGHT = 720


class CameraUnavailableError(RuntimeError):
    pass


class FrameSlot:
    """Latest-value handoff. Values are immutable HandFrames, so a swap is the whole update."""

    def __init__(self, initial=None):
        self._lock = threading.Lock()
        self._value = initial if initial is not None else HandFrame()
        self._version = 0

    def publish(self, value):
        with self._lock:
            self._value = value
            self._version += 1

    def read(self):
        with self._lock:
            return self._value

    @property
    def version(self) -> int:
        with self._lock:
            return self._version


class VideoSource:
    """cv2 camera with per-frame timestamps (ms, monotonic)."""

    def __init__(self, index=None, max_index=6, width=CAMERA_WIDTH, height=CAMERA_HEIGHT):
        self.index = index
        self.max_index = int(max_index)
        self.width = int(width)
        self.height = int(height)
        self.cap = None

    def open(self):
        candidates = [self.index] if self.index is not None else range(self.max_index)
        for i in candidates:
            cap = cv2.VideoCapture(i)
            if cap.isOpened():
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
                ok, _ = cap.read()
                if ok:
                    logger.info("using camera index %d", i)
                    self.cap = cap
                    return
            cap.release()
        raise CameraUnavailableError(f"No working camera found (tried {list(candidates)}).")

    def read(self):
        """Returns (ok, frame_bgr, timestamp_ms)."""
        if self.cap is None:
            return False, None, -1.0
        ok, frame = self.cap.read()
        if not ok:
            return False, None, -1.0
        return True, frame, time.monotonic() * 1000.0

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class HandTrackingService:
    """
    Owns the detection loop.

    Lifecycle: initialize() -> start() -> stop() -> dispose().
    If the detector or the camera cannot be brought up, the service stays in a
    persistent not-ready state with a reason; it never re-prompts on its own.
    """

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    NOT_READY = "not_ready"

    def __init__(self, detector, source, processor=None, slot=None, idle_sleep=0.002):
        self.detector = detector
        self.source = source
        self.processor = processor if processor is not None else HandSignalProcessor()
        self.slot = slot if slot is not None else FrameSlot()
        self.idle_sleep = float(idle_sleep)

        self.state = self.IDLE
        self.reason = ""
        self.failures = 0
        self.detections = 0

        self._last_ts = None
        self._stop = threading.Event()
        self._thread = None

    @property
    def ready(self) -> bool:
        return self.state == self.RUNNING

    def initialize(self) -> bool:
        if self.state == self.NOT_READY:
            return False
        try:
            self.detector.initialize()
            self.source.open()
        except RuntimeError as e:
            self.state = self.NOT_READY
            self.reason = str(e)
            logger.error("hand tracking unavailable: %s", e)
            return False
        return True

    def start(self) -> bool:
        if self._thread and self._thread.is_alive():
            return True
        if not self.initialize():
            return False

        self._stop.clear()
        self.state = self.RUNNING
        self._thread = threading.Thread(target=self._loop, name="hand-tracking", daemon=True)
        self._thread.start()
        logger.info("hand tracking started")
        return True

    def latest(self) -> HandFrame:
        return self.slot.read()

    def poll_once(self) -> bool:
        """One loop iteration. Returns True if a new HandFrame was published."""
        ok, frame, ts = self.source.read()
        if not ok or ts == self._last_ts:
            return False
        self._last_ts = ts

        try:
            detection = self.detector.detect(frame, ts)
        except Exception:
            # A bad frame must never take the loop down
            self.failures += 1
            logger.debug("detection failed, skipping frame", exc_info=True)
            return False

        self.slot.publish(self.processor.process(detection))
        self.detections += 1
        return True

    def _loop(self):
        while not self._stop.is_set():
            if not self.poll_once():
                time.sleep(self.idle_sleep)

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self.state == self.RUNNING:
            self.state = self.STOPPED

    def dispose(self):
        self.stop()
        self.detector.close()
        self.source.release()
