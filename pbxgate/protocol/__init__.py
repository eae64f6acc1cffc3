"""
Protocol layer for the gateway and manager interfaces.

This module contains the I/O-free protocol handling:
- Wire constants and the menu branch key table
- Header block and line framing
- Gateway reply assembly and decoding
- Manager action encoding and message classification
"""

from pbxgate.protocol.action import (
    ManagerMessage,
    MessageKind,
    build_action_fields,
    classify_message,
    encode_action,
    event_signal,
    generate_action_id,
)
from pbxgate.protocol.constants import BRANCH_KEYS, ProtocolConstants
from pbxgate.protocol.framer import (
    FrameEvent,
    GatewayFramer,
    HeaderBlock,
    MessageFramer,
    RawLine,
    find_block_end,
    parse_header_block,
)
from pbxgate.protocol.reply import DecodedReply, ReplyAssembler, decode_reply

__all__ = [
    # Constants
    "ProtocolConstants",
    "BRANCH_KEYS",
    # Framing
    "HeaderBlock",
    "RawLine",
    "FrameEvent",
    "MessageFramer",
    "GatewayFramer",
    "parse_header_block",
    "find_block_end",
    # Replies
    "DecodedReply",
    "ReplyAssembler",
    "decode_reply",
    # Actions
    "ManagerMessage",
    "MessageKind",
    "classify_message",
    "encode_action",
    "build_action_fields",
    "event_signal",
    "generate_action_id",
]
