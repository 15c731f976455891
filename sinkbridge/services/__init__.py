"""Service layer of the sink bridge daemon."""

from .pipeline import ForwardingPipeline, ForwardResult, ForwardStatus, StreamEnd

__all__ = ["ForwardResult", "ForwardStatus", "ForwardingPipeline", "StreamEnd"]
