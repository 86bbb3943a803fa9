"""
Pitch analyzers: single-window YIN and whole-clip dominant pitch.
"""

from tunegraph.analyzers.pitch.yin import PitchDetector, create_pitch_detector
from tunegraph.analyzers.pitch.dominant import DominantPitchEstimator, create_dominant_pitch_estimator

__all__ = [
    "PitchDetector",
    "create_pitch_detector",
    "DominantPitchEstimator",
    "create_dominant_pitch_estimator",
]
