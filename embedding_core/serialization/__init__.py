"""
Serialization of store contents.
"""

from .msgpack_codec import MsgpackCodec, serialize, deserialize

__all__ = ['MsgpackCodec', 'serialize', 'deserialize']
