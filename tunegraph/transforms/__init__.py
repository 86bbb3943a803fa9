"""
Buffer transformers. Each returns a new SampleBuffer and never mutates its input.
"""

from tunegraph.transforms.time_stretch import TimeStretcher
from tunegraph.transforms.pitch_shift import PitchShifter
from tunegraph.transforms.gain import GainProcessor, SoftLimiter
from tunegraph.transforms.edits import crop, fade_in, fade_out, change_playback_rate, soften, join, mix

__all__ = [
    "TimeStretcher",
    "PitchShifter",
    "GainProcessor",
    "SoftLimiter",
    "crop",
    "fade_in",
    "fade_out",
    "change_playback_rate",
    "soften",
    "join",
    "mix",
]
