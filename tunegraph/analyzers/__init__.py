"""
Analyzer implementations for pitch, tempo, loudness and spectrum.
"""

from tunegraph.analyzers.pitch.yin import PitchDetector
from tunegraph.analyzers.pitch.dominant import DominantPitchEstimator
from tunegraph.analyzers.rhythmic.tempo import TempoEstimator
from tunegraph.analyzers.loudness.peak import LoudnessAnalyzer
from tunegraph.analyzers.spectral.bands import SpectralAnalyzer

__all__ = [
    "PitchDetector",
    "DominantPitchEstimator",
    "TempoEstimator",
    "LoudnessAnalyzer",
    "SpectralAnalyzer",
]
