"""
Landmark Provider Module

Runs MediaPipe Face Mesh (with iris refinement) and MediaPipe Pose on camera
frames and returns landmark sequences in the canonical orderings used by the
metric extractor: 478 face points, 33 pose points.
"""

import os
import warnings
from typing import Any, Optional, Sequence, Tuple

import numpy as np

# Suppress TensorFlow warnings
os.environ['TF_CPP_MIN_LOG_LEVEL'] = '3'
warnings.filterwarnings('ignore', category=UserWarning)

try:
    import cv2
    CV2_AVAILABLE = True
except ImportError:
    cv2 = None
    CV2_AVAILABLE = False

try:
    import mediapipe as mp
    MP_AVAILABLE = True
except ImportError:
    mp = None
    MP_AVAILABLE = False

from ..utils.logger import get_logger

logger = get_logger(__name__)

LandmarkList = Optional[Sequence[Any]]


class LandmarkProvider:
    """Detects at most one face and one body pose per frame."""

    def __init__(self, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5):
        """
        Initialize MediaPipe models.

        Args:
            min_detection_confidence: Detection confidence for both models
            min_tracking_confidence: Tracking confidence for both models
        """
        if not MP_AVAILABLE or not CV2_AVAILABLE:
            raise RuntimeError("Landmark provider needs the 'capture' extra (mediapipe, opencv-python)")

        self.face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self.pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

        logger.info("Landmark provider initialized (face mesh + pose)")

    def process(self, frame: np.ndarray) -> Tuple[LandmarkList, LandmarkList]:
        """
        Detect landmarks in a BGR frame.

        Returns:
            (face_landmarks, pose_landmarks); either is None on detection failure
        """
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        face_results = self.face_mesh.process(rgb_frame)
        pose_results = self.pose.process(rgb_frame)

        face_landmarks = None
        if face_results.multi_face_landmarks:
            face_landmarks = list(face_results.multi_face_landmarks[0].landmark)

        pose_landmarks = None
        if pose_results.pose_landmarks:
            pose_landmarks = list(pose_results.pose_landmarks.landmark)

        return face_landmarks, pose_landmarks

    def close(self) -> None:
        """Release model resources."""
        self.face_mesh.close()
        self.pose.close()
        logger.info("Landmark provider closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
