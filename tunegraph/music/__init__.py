"""
Music theory helpers: keys, scales and quantization.
"""

from tunegraph.music.keys import (
    ALL_KEYS,
    NOTE_NAMES,
    Key,
    KeyQuantizer,
    parse_key,
    parse_note,
    signed_distance,
)

__all__ = [
    "ALL_KEYS",
    "NOTE_NAMES",
    "Key",
    "KeyQuantizer",
    "parse_key",
    "parse_note",
    "signed_distance",
]
