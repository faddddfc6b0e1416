"""Protocol layer — wire messages, adapter and the WebSocket-driven pile loop."""

from pile_simulator.protocol.adapter import ProtocolAdapter
from pile_simulator.protocol.messages import Message, MessageType, decode, encode
from pile_simulator.protocol.transport import PileDriver, run_websocket

__all__ = [
    "Message",
    "MessageType",
    "PileDriver",
    "ProtocolAdapter",
    "decode",
    "encode",
    "run_websocket",
]
