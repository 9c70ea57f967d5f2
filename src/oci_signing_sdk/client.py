"""
Client for signed OCI API calls

This module ties the signer and a transport together: sign the request,
send it with the signed headers, and return the parsed response.
"""

import logging
from typing import Optional, Tuple, Union

from .exceptions import TransportError
from .config.settings import ClientSettings
from .signing.clock import Clock, SystemClock
from .signing.signer import RequestSigner
from .signing.types import (
    HttpMethod,
    RequestDescriptor,
    ResponseDescriptor,
    SigningIdentity,
    RequestedHeaders,
    normalize_requested_headers,
)
from .transport.base import Transport, OPC_REQUEST_ID
from .transport.buffered import RequestsTransport
from .transport.raw import RawStreamTransport

logger = logging.getLogger(__name__)


def create_transport(settings: ClientSettings) -> Transport:
    """
    Create the transport selected by the settings.

    Args:
        settings: Client settings

    Returns:
        Transport: RequestsTransport or RawStreamTransport
    """
    if settings.transport == "raw":
        return RawStreamTransport(
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout
        )
    return RequestsTransport(timeout=settings.timeout)


class OciClient:
    """
    Client for calling the OCI REST API with signed requests.

    The signing identity is immutable and shared by all calls; every call
    computes its own signature and uses its own connection.
    """

    def __init__(
        self,
        identity: SigningIdentity,
        transport: Optional[Transport] = None,
        clock: Optional[Clock] = None,
        settings: Optional[ClientSettings] = None
    ):
        """
        Initialize the client.

        Args:
            identity: Identity used to sign every request
            transport: Transport; chosen from the settings when omitted
            clock: UTC time source; the system clock when omitted
            settings: Client settings; defaults when omitted

        Raises:
            SigningError: If the identity's private key is unusable
        """
        self.settings = settings or ClientSettings()
        self.transport = transport or create_transport(self.settings)
        self.signer = RequestSigner(
            identity,
            clock=clock or SystemClock(min_valid_year=self.settings.min_valid_year),
            clock_wait_attempts=self.settings.clock_wait_attempts,
            clock_wait_delay=self.settings.clock_wait_delay,
            log_signing_string=self.settings.log_signing_string
        )

        logger.info(f"Initialized OCI client with {type(self.transport).__name__}")

    @property
    def identity(self) -> SigningIdentity:
        return self.signer.identity

    def sign_and_send(
        self,
        request: RequestDescriptor,
        requested_response_headers: RequestedHeaders = ()
    ) -> ResponseDescriptor:
        """
        Sign a request, send it and parse the response.

        Args:
            request: Request to send
            requested_response_headers: Response header names to capture,
                matched case-sensitively

        Returns:
            ResponseDescriptor: The response; non-2xx statuses are returned,
                not raised

        Raises:
            ConfigError: If the requested header names are invalid
            SigningError: If signing fails
            TimeUnavailableError: If no valid UTC time is available
            TransportError: If the request could not be delivered or parsed
        """
        requested = normalize_requested_headers(requested_response_headers)
        transport_headers: Tuple[str, ...] = requested
        if OPC_REQUEST_ID not in transport_headers:
            transport_headers = requested + (OPC_REQUEST_ID,)

        signing_result = self.signer.sign_request(request)
        response = self.transport.send(request, signing_result, transport_headers)

        opc_request_id = response.headers.get(OPC_REQUEST_ID)
        if OPC_REQUEST_ID not in requested:
            response.headers.pop(OPC_REQUEST_ID, None)
        response.opc_request_id = opc_request_id

        if not response.ok:
            logger.info(
                f"{request.method.value} {request.path} returned {response.status_code} "
                f"(opc-request-id: {opc_request_id})"
            )
        return response

    def api_call(
        self,
        request: RequestDescriptor,
        requested_response_headers: RequestedHeaders = ()
    ) -> ResponseDescriptor:
        """
        Like sign_and_send, but report transport failures in the response.

        A TransportError becomes a ResponseDescriptor with ``error_message``
        set and no status code. Configuration, signing and clock errors are
        still raised.
        """
        try:
            return self.sign_and_send(request, requested_response_headers)
        except TransportError as e:
            logger.error(f"API call to {request.host} failed: {e.message}")
            return ResponseDescriptor.from_error(e.message)

    def request(
        self,
        method: Union[HttpMethod, str],
        host: str,
        path: str,
        body: Optional[Union[str, bytes]] = None,
        requested_response_headers: RequestedHeaders = (),
        **kwargs
    ) -> ResponseDescriptor:
        """
        Build a request descriptor and send it.

        Args:
            method: HTTP method
            host: API host
            path: Request path
            body: Optional body
            requested_response_headers: Response header names to capture
            **kwargs: Additional RequestDescriptor fields

        Returns:
            ResponseDescriptor: The response
        """
        descriptor = RequestDescriptor(host=host, path=path, method=method, body=body, **kwargs)
        return self.sign_and_send(descriptor, requested_response_headers)

    def get(self, host: str, path: str, **kwargs) -> ResponseDescriptor:
        """Send a GET request."""
        return self.request(HttpMethod.GET, host, path, **kwargs)

    def post(self, host: str, path: str, body: Optional[Union[str, bytes]] = None, **kwargs) -> ResponseDescriptor:
        """Send a POST request."""
        return self.request(HttpMethod.POST, host, path, body=body, **kwargs)

    def put(self, host: str, path: str, body: Optional[Union[str, bytes]] = None, **kwargs) -> ResponseDescriptor:
        """Send a PUT request."""
        return self.request(HttpMethod.PUT, host, path, body=body, **kwargs)

    def patch(self, host: str, path: str, body: Optional[Union[str, bytes]] = None, **kwargs) -> ResponseDescriptor:
        """Send a PATCH request."""
        return self.request(HttpMethod.PATCH, host, path, body=body, **kwargs)

    def delete(self, host: str, path: str, **kwargs) -> ResponseDescriptor:
        """Send a DELETE request."""
        return self.request(HttpMethod.DELETE, host, path, **kwargs)

    def close(self) -> None:
        """Release transport resources."""
        self.transport.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, *args):
        """Context manager exit."""
        self.close()


def create_client(
    identity: SigningIdentity,
    transport: Optional[Union[Transport, str]] = None,
    settings: Optional[ClientSettings] = None,
    clock: Optional[Clock] = None
) -> OciClient:
    """
    Create a new OCI client.

    Args:
        identity: Signing identity
        transport: Transport instance, or "requests" / "raw"
        settings: Optional client settings
        clock: Optional UTC time source

    Returns:
        OciClient: Configured client
    """
    settings = settings or ClientSettings()
    if isinstance(transport, str):
        settings = ClientSettings.from_dict({**settings.to_dict(), "transport": transport})
        transport = None
    return OciClient(identity, transport=transport, clock=clock, settings=settings)


def sign_and_send(
    identity: SigningIdentity,
    request: RequestDescriptor,
    requested_response_headers: RequestedHeaders = (),
    transport: Optional[Transport] = None
) -> ResponseDescriptor:
    """
    Sign and send one request.

    Args:
        identity: Signing identity
        request: Request to send
        requested_response_headers: Response header names to capture
        transport: Optional transport; the requests-backed one by default

    Returns:
        ResponseDescriptor: The response
    """
    client = OciClient(identity, transport=transport)
    return client.sign_and_send(request, requested_response_headers)
