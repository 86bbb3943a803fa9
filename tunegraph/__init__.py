"""
TuneGraph - Audio Analysis and Batch Synchronization Engine

Pitch, tempo and loudness analysis plus time stretching, pitch shifting
and gain, with a batch coordinator that brings a set of files to a
common tempo, level or key.
"""

__version__ = "1.0.0"
__author__ = "Audio Analysis Team"
