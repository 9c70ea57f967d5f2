"""
Buffered HTTP client transport

Sends signed requests through ``requests``. The client library owns the
wire format; this transport sets the signed headers, picks out the requested
response headers and translates client errors into TransportError.
"""

import os
import logging
import tempfile
import warnings
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional, Sequence, Tuple, Union

import requests
from urllib3 import HTTPHeaderDict
from urllib3.exceptions import InsecureRequestWarning

from ..exceptions import TransportError, ErrorCodes
from ..signing.types import RequestDescriptor, ResponseDescriptor, SigningResult
from .base import Transport, build_request_headers, capture_headers

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "OCI-Signing-SDK-Python"


class RequestsTransport(Transport):
    """
    Transport backed by a ``requests.Session``.

    A fresh session is opened and closed for every call so no connection or
    header state carries over between requests.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session_factory: Callable[[], requests.Session] = requests.Session
    ):
        """
        Initialize the transport.

        Args:
            timeout: Connect and read timeout in seconds
            session_factory: Factory for the per-call session
        """
        self.timeout = timeout
        self.session_factory = session_factory

    def send(
        self,
        request: RequestDescriptor,
        signing_result: SigningResult,
        requested_headers: Sequence[str] = ()
    ) -> ResponseDescriptor:
        # requests computes Content-Length from the body it sends.
        headers = {
            name: value
            for name, value in build_request_headers(request, signing_result)
            if name.lower() != "content-length"
        }
        headers.setdefault("User-Agent", USER_AGENT)
        data = request.body_bytes if request.content_length > 0 else None

        with _verify_option(request.trust_anchor) as verify, self.session_factory() as session:
            try:
                logger.debug(f"Making {request.method.value} request to {request.url}")
                response = session.request(
                    request.method.value,
                    request.url,
                    headers=headers,
                    data=data,
                    timeout=self.timeout,
                    verify=verify,
                    allow_redirects=False
                )
            except requests.exceptions.Timeout:
                raise TransportError(
                    f"Request timeout after {self.timeout} seconds",
                    ErrorCodes.TIMEOUT,
                    {"host": request.host}
                ) from None
            except requests.exceptions.ConnectionError as e:
                raise TransportError(
                    f"Connection error: {e}",
                    ErrorCodes.CONNECTION_FAILED,
                    {"host": request.host}
                ) from e
            except requests.exceptions.RequestException as e:
                raise TransportError(
                    f"Request failed: {e}",
                    ErrorCodes.REQUEST_FAILED,
                    {"host": request.host}
                ) from e

        logger.debug(f"Received status {response.status_code} from {request.host}")
        return ResponseDescriptor(
            status_code=response.status_code,
            body=response.content.decode("utf-8", errors="replace"),
            headers=capture_headers(_received_header_pairs(response), requested_headers)
        )


def _received_header_pairs(response: requests.Response) -> Iterable[Tuple[str, str]]:
    """
    Return response headers as received, one pair per occurrence.

    ``response.headers`` folds repeated names into one comma-joined value;
    the urllib3 header dict behind ``response.raw`` keeps them apart.
    """
    raw_headers = getattr(response.raw, "headers", None)
    if isinstance(raw_headers, HTTPHeaderDict):
        return raw_headers.iteritems()
    return response.headers.items()


@contextmanager
def _verify_option(trust_anchor: Optional[str]) -> Iterator[Union[str, bool]]:
    """
    Yield the ``verify`` argument for one request.

    A trust anchor is written to a temporary CA bundle that is removed when
    the call completes. Without one, verification is switched off and the
    insecure-request warning is silenced for this call only.
    """
    if trust_anchor is None:
        logger.warning("No trust anchor given; server certificate will not be verified")
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", InsecureRequestWarning)
            yield False
        return

    handle = tempfile.NamedTemporaryFile("w", suffix=".pem", delete=False, encoding="utf-8")
    try:
        with handle:
            handle.write(trust_anchor)
        yield handle.name
    finally:
        os.unlink(handle.name)
