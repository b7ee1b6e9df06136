"""Message framing for the driving simulator."""

from .protocol import ProtocolError, decode_message, encode_control, encode_event, encode_manual

__all__ = [
    'ProtocolError',
    'decode_message',
    'encode_control',
    'encode_event',
    'encode_manual',
]
