from marketsync.chain.codec import CORE_EVENT_SIGNATURE, decode_event_payload, encode_event_payload, event_type_id
from marketsync.chain.envelope import ChainLog, parse_envelope
from marketsync.chain.registry import EventRegistry, EventSpec, build_default_registry

__all__ = [
    "CORE_EVENT_SIGNATURE",
    "ChainLog",
    "EventRegistry",
    "EventSpec",
    "build_default_registry",
    "decode_event_payload",
    "encode_event_payload",
    "event_type_id",
    "parse_envelope",
]
