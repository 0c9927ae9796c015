"""RESP wire protocol: request encoding and reply framing."""

from valkeywire.protocol.decoder import FrameDecoder
from valkeywire.protocol.encoder import (
    build_command,
    encode_arg,
    encode_command,
    encode_commands,
)

__all__ = [
    "FrameDecoder",
    "build_command",
    "encode_arg",
    "encode_command",
    "encode_commands",
]
