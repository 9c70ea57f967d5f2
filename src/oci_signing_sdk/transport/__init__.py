"""
Transports for signed OCI requests

Two interchangeable implementations of the Transport interface: one backed
by ``requests`` and one that writes HTTP/1.1 by hand onto a raw stream.
"""

from .base import (
    Transport,
    OPC_REQUEST_ID,
    build_request_headers,
    capture_headers,
)
from .buffered import RequestsTransport
from .raw import (
    RawStreamTransport,
    ResponseParser,
    ParserState,
    SocketConnector,
    SocketStream,
    Stream,
    Connector,
    serialize_request,
    parse_response,
    parse_status_line,
)

__all__ = [
    'Transport',
    'OPC_REQUEST_ID',
    'build_request_headers',
    'capture_headers',
    'RequestsTransport',
    'RawStreamTransport',
    'ResponseParser',
    'ParserState',
    'SocketConnector',
    'SocketStream',
    'Stream',
    'Connector',
    'serialize_request',
    'parse_response',
    'parse_status_line',
]
