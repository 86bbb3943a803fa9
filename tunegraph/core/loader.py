"""
Audio file loading and writing.

Decodes files into SampleBuffers and writes processed buffers back out.
File-format concerns stay here; analyzers and transformers only see
SampleBuffers.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Set

import librosa
import numpy as np
import soundfile as sf

from tunegraph.core.models import SampleBuffer
from tunegraph.utils.errors import AudioLoadError, UnsupportedFormatError


# Constants
SUPPORTED_FORMATS: Dict[str, str] = {
    '.wav': 'soundfile',
    '.aif': 'soundfile',
    '.aiff': 'soundfile',
    '.mp3': 'audioread',
    '.flac': 'soundfile',
    '.ogg': 'soundfile',
}

WRITABLE_FORMATS: Set[str] = {'.wav', '.flac', '.aif', '.aiff', '.ogg'}

MAX_FILE_SIZE: int = 524288000  # 500 MB

logger = logging.getLogger(__name__)


class AudioLoader:
    """
    Loads audio files into SampleBuffers.

    Thread-safe and stateless - can be used concurrently.
    """

    def __init__(
        self,
        target_sr: Optional[int] = None,
        max_file_size: int = MAX_FILE_SIZE
    ):
        """
        Initialize loader with configuration.

        Args:
            target_sr: Resample to this rate (None keeps the native rate)
            max_file_size: Maximum file size in bytes
        """
        self.target_sr = target_sr
        self.max_file_size = max_file_size
        self.supported_suffixes: Set[str] = set(SUPPORTED_FORMATS.keys())

    def load(self, file_path: Path) -> SampleBuffer:
        """
        Load audio file into a SampleBuffer.

        Raises:
            FileNotFoundError: File doesn't exist
            UnsupportedFormatError: File format not supported
            AudioLoadError: File is too large or audio data is invalid
        """
        file_path = Path(file_path)

        self._validate_file(file_path)

        try:
            audio_data, sample_rate = librosa.load(
                str(file_path),
                sr=self.target_sr,
                mono=False,
                dtype=np.float32
            )
        except Exception as e:
            raise AudioLoadError(
                f"Failed to load audio data from {file_path}: {e}",
                file_path=str(file_path)
            ) from e

        if audio_data.size == 0:
            raise AudioLoadError(f"Audio file is empty: {file_path}", file_path=str(file_path))

        if np.sqrt(np.mean(audio_data ** 2)) < 1e-6:
            logger.warning(f"Audio appears to be silent: {file_path}")

        buffer = SampleBuffer(audio_data, int(sample_rate))
        logger.info(
            f"Loaded {file_path.name}: {buffer.sample_rate} Hz, "
            f"{buffer.channel_count} ch, {buffer.duration_seconds:.2f}s"
        )
        return buffer

    def get_metadata(self, file_path: Path) -> Dict[str, Any]:
        """Read format metadata without decoding the audio."""
        file_path = Path(file_path)
        try:
            with sf.SoundFile(str(file_path)) as f:
                return {
                    'sample_rate': f.samplerate,
                    'bit_depth': f.subtype,
                    'format': file_path.suffix.lstrip('.').upper(),
                    'channels': f.channels,
                    'duration': f.frames / f.samplerate
                }
        except Exception as e:
            raise AudioLoadError(
                f"Could not read metadata from {file_path}: {e}",
                file_path=str(file_path)
            ) from e

    def _validate_file(self, file_path: Path) -> None:
        """Validate file exists, has supported format, and is within size limit."""
        if not file_path.exists():
            raise FileNotFoundError(f"Audio file not found: {file_path}")

        suffix = file_path.suffix.lower()
        if suffix not in self.supported_suffixes:
            raise UnsupportedFormatError(
                f"Format {suffix} not supported. "
                f"Supported formats: {', '.join(sorted(self.supported_suffixes))}",
                format=suffix
            )

        file_size = file_path.stat().st_size
        if file_size > self.max_file_size:
            raise AudioLoadError(
                f"File too large: {file_size / 1024 / 1024:.1f} MB. "
                f"Maximum: {self.max_file_size / 1024 / 1024:.1f} MB",
                file_path=str(file_path)
            )


class AudioWriter:
    """Writes SampleBuffers to disk with soundfile."""

    def __init__(self, subtype: str = 'PCM_16'):
        self.subtype = subtype

    def write(self, buffer: SampleBuffer, file_path: Path) -> Path:
        """
        Write buffer to file; format follows the file extension.

        Raises:
            UnsupportedFormatError: Extension cannot be written
            AudioLoadError: Write failed
        """
        file_path = Path(file_path)
        suffix = file_path.suffix.lower()
        if suffix not in WRITABLE_FORMATS:
            raise UnsupportedFormatError(
                f"Cannot write {suffix} files. "
                f"Writable formats: {', '.join(sorted(WRITABLE_FORMATS))}",
                format=suffix
            )

        file_path.parent.mkdir(parents=True, exist_ok=True)
        subtype = self.subtype if suffix != '.ogg' else 'VORBIS'
        try:
            # soundfile expects (frames, channels)
            sf.write(str(file_path), buffer.channels.T, buffer.sample_rate, subtype=subtype)
        except Exception as e:
            raise AudioLoadError(f"Failed to write {file_path}: {e}", file_path=str(file_path)) from e

        logger.info(f"Wrote {file_path}")
        return file_path


def create_audio_loader(config: Optional[Dict[str, Any]] = None) -> AudioLoader:
    """
    Factory function to create AudioLoader with configuration.

    Args:
        config: Optional configuration dict (the ``loader`` section)
    """
    if config is None:
        config = {}

    return AudioLoader(
        target_sr=config.get('target_sample_rate'),
        max_file_size=config.get('max_file_size', MAX_FILE_SIZE)
    )
