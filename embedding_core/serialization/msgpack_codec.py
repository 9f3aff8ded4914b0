"""
MessagePack codec used to persist embedding stores.

The codec turns nested maps, sequences and primitives into a single
self-describing binary buffer and back. NumPy scalars and arrays found inside
payloads are converted to plain Python values before encoding.
"""

import logging
from typing import Any

import msgpack
import numpy as np

from embedding_core.interfaces import CorruptDataError, SerializationError

logger = logging.getLogger(__name__)


def _encode_numpy(obj: Any) -> Any:
    """msgpack ``default`` hook for values the packer does not know."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not serializable")


class MsgpackCodec:
    """
    Binary codec backed by msgpack.

    Args:
        use_single_float: Encode floats as 32-bit values. Halves the size of
            float32 matrices, loses precision for float64 ones.
    """

    def __init__(self, use_single_float: bool = False):
        self.use_single_float = use_single_float

    def encode(self, value: Any) -> bytes:
        """
        Encode a structured value.

        Args:
            value: Nested maps, sequences and primitives

        Returns:
            Encoded bytes

        Raises:
            SerializationError: If some part of the value cannot be encoded
        """
        try:
            return msgpack.packb(
                value,
                default=_encode_numpy,
                use_bin_type=True,
                use_single_float=self.use_single_float,
            )
        except (TypeError, ValueError, OverflowError) as e:
            logger.error(f"Failed to encode value: {e}")
            raise SerializationError(f"Failed to encode value: {e}") from e

    def decode(self, data: bytes) -> Any:
        """
        Decode bytes produced by ``encode``.

        Args:
            data: Encoded bytes

        Returns:
            Decoded value

        Raises:
            CorruptDataError: If the bytes are not a valid encoding
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise CorruptDataError(f"Expected bytes, got {type(data).__name__}")

        try:
            return msgpack.unpackb(data, raw=False, strict_map_key=False)
        except (msgpack.exceptions.UnpackException, ValueError, TypeError) as e:
            logger.error(f"Failed to decode buffer of {len(data)} bytes: {e}")
            raise CorruptDataError(f"Failed to decode buffer: {e}") from e


_default_codec = MsgpackCodec()


def serialize(value: Any) -> bytes:
    """Encode ``value`` with the default codec."""
    return _default_codec.encode(value)


def deserialize(data: bytes) -> Any:
    """Decode ``data`` with the default codec."""
    return _default_codec.decode(data)
