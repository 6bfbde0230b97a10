"""Zstandard compression stage.

The ``zstandard`` compressor and decompressor contexts are not safe to use
from several threads at once, so :class:`ZstdCodec` keeps one pair per
thread.  Each pair is created the first time a thread touches the codec and
is reused for the life of that thread; nothing is torn down per call.  A
single codec can therefore be shared by every concurrent seal and unseal.
Each call compresses a complete, independent frame with no dictionary.
"""

from __future__ import annotations

import threading

import zstandard

from .errors import DecompressionError

DEFAULT_LEVEL = 3
DEFAULT_MAX_OUTPUT_SIZE = 1 << 20
MIN_LEVEL = 1
MAX_LEVEL = 22


class ZstdCodec:
    """Stateless zstd frame compressor shared across threads."""

    def __init__(self, level: int = DEFAULT_LEVEL, max_output_size: int = DEFAULT_MAX_OUTPUT_SIZE) -> None:
        if not MIN_LEVEL <= level <= MAX_LEVEL:
            raise ValueError(f"compression level must be between {MIN_LEVEL} and {MAX_LEVEL}")
        if max_output_size <= 0:
            raise ValueError("max_output_size must be positive")
        self.level = level
        self.max_output_size = max_output_size
        self._local = threading.local()

    def __repr__(self) -> str:
        return f"ZstdCodec(level={self.level}, max_output_size={self.max_output_size})"

    def _compressor(self) -> zstandard.ZstdCompressor:
        compressor = getattr(self._local, "compressor", None)
        if compressor is None:
            compressor = zstandard.ZstdCompressor(level=self.level, write_content_size=True)
            self._local.compressor = compressor
        return compressor

    def _decompressor(self) -> zstandard.ZstdDecompressor:
        decompressor = getattr(self._local, "decompressor", None)
        if decompressor is None:
            decompressor = zstandard.ZstdDecompressor()
            self._local.decompressor = decompressor
        return decompressor

    def compress(self, data: bytes) -> bytes:
        """Compress *data* into a single zstd frame."""

        return self._compressor().compress(data)

    def decompress(self, data: bytes) -> bytes:
        """Decompress one zstd frame, enforcing :attr:`max_output_size`."""

        try:
            declared = zstandard.frame_content_size(data)
            if declared > self.max_output_size:
                raise DecompressionError(
                    f"Compressed frame declares {declared} bytes, limit is {self.max_output_size}"
                )
            return self._decompressor().decompress(data, max_output_size=self.max_output_size)
        except zstandard.ZstdError as exc:
            raise DecompressionError(f"Failed to decompress payload: {exc}") from exc


_default_codec = ZstdCodec()


def default_codec() -> ZstdCodec:
    """Return the process-wide codec used when callers do not pass one."""

    return _default_codec


def compress(data: bytes) -> bytes:
    return _default_codec.compress(data)


def decompress(data: bytes) -> bytes:
    return _default_codec.decompress(data)
