"""
Common transport interface

A transport delivers a signed request and turns the reply into a
ResponseDescriptor. Both implementations share the outbound header list and
the response header capture defined here.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Sequence, Tuple

from ..exceptions import ConfigError, ErrorCodes
from ..signing.types import (
    RESERVED_HEADER_NAMES,
    RequestDescriptor,
    ResponseDescriptor,
    SigningResult,
    validate_header_name,
    validate_header_value,
)

OPC_REQUEST_ID = "opc-request-id"

HeaderPairs = List[Tuple[str, str]]


class Transport(ABC):
    """Delivers signed requests"""

    @abstractmethod
    def send(
        self,
        request: RequestDescriptor,
        signing_result: SigningResult,
        requested_headers: Sequence[str] = ()
    ) -> ResponseDescriptor:
        """
        Send a signed request and return the parsed response.

        Args:
            request: Request to send
            signing_result: Signature for this request
            requested_headers: Response header names to capture (case-sensitive)

        Returns:
            ResponseDescriptor: Parsed response; non-2xx statuses included

        Raises:
            TransportError: If the request could not be delivered or the
                response could not be parsed
        """

    def close(self) -> None:
        """Release transport-wide resources. Connections are per call."""


def build_request_headers(
    request: RequestDescriptor,
    signing_result: SigningResult,
    connection_close: bool = False
) -> HeaderPairs:
    """
    Build the ordered outbound header list for a signed request.

    Order: date, Authorization, host, x-content-sha256 (signed bodies only),
    user headers, content-type, content-length, then Connection: close when
    requested.

    Args:
        request: Request being sent
        signing_result: Signature for this request
        connection_close: Append ``Connection: close``

    Returns:
        list: (name, value) pairs

    Raises:
        ConfigError: If any name or value could inject a header line, or a
            user header reuses a name the transport sets
    """
    headers: HeaderPairs = [
        ("date", signing_result.date),
        ("Authorization", signing_result.authorization),
        ("host", request.host),
    ]
    if signing_result.content_sha256 is not None:
        headers.append(("x-content-sha256", signing_result.content_sha256))

    for header in request.headers:
        if header.name.lower() in RESERVED_HEADER_NAMES:
            raise ConfigError(
                f"Outbound header {header.name!r} is set by the transport and cannot be overridden",
                ErrorCodes.INVALID_HEADER,
                {"header": header.name}
            )
        headers.append((header.name, header.value))

    headers.append(("content-type", request.content_type))
    headers.append(("content-length", str(request.content_length)))

    if connection_close:
        headers.append(("Connection", "close"))

    for name, value in headers:
        validate_header_name(name)
        validate_header_value(name, value)

    return headers


def capture_headers(pairs: Iterable[Tuple[str, str]], requested_names: Sequence[str]) -> Dict[str, str]:
    """
    Select the requested headers from a response.

    Names are matched case-sensitively; the first occurrence of a name wins.

    Args:
        pairs: (name, value) pairs as received
        requested_names: Names to capture

    Returns:
        dict: Captured name to value
    """
    wanted = set(requested_names)
    captured: Dict[str, str] = {}
    for name, value in pairs:
        if name in wanted and name not in captured:
            captured[name] = value
    return captured
