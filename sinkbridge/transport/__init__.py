"""Transport abstractions (connector, serial) for the sink bridge daemon."""

from .connector import ClosableHandle, Connector, Opener
from .serial import SerialLineProtocol, SerialLineSource, open_serial_source

__all__ = [
    "ClosableHandle",
    "Connector",
    "Opener",
    "SerialLineProtocol",
    "SerialLineSource",
    "open_serial_source",
]
