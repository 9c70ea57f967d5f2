"""
OCI Signing SDK
RSA-SHA256 request signing and transport for the OCI REST API
"""

from .version import __version__
from .exceptions import (
    OciSdkError,
    ConfigError,
    SigningError,
    TimeUnavailableError,
    TransportError,
    ErrorCodes,
)
from .signing import (
    # Core signing functionality
    RequestSigner,
    create_signer,
    sign_request,
    # Types
    HttpMethod,
    SigningIdentity,
    HeaderField,
    RequestDescriptor,
    ResponseDescriptor,
    SigningResult,
    # Signing string
    signed_header_names,
    build_signing_string,
    build_authorization_header,
    # Time
    Clock,
    SystemClock,
    FixedClock,
    format_http_date,
    # Utilities
    calculate_content_sha256,
    verify_signature,
)
from .transport import (
    Transport,
    RequestsTransport,
    RawStreamTransport,
    ResponseParser,
    SocketConnector,
    serialize_request,
    parse_response,
)
from .config import (
    ClientSettings,
    OciProfile,
    load_profile,
    load_identity,
)
from .client import (
    OciClient,
    create_client,
    create_transport,
    sign_and_send,
)

# Public API exports
__all__ = [
    '__version__',
    # Exceptions
    'OciSdkError',
    'ConfigError',
    'SigningError',
    'TimeUnavailableError',
    'TransportError',
    'ErrorCodes',
    # Request Signing - Core
    'RequestSigner',
    'create_signer',
    'sign_request',
    # Request Signing - Types
    'HttpMethod',
    'SigningIdentity',
    'HeaderField',
    'RequestDescriptor',
    'ResponseDescriptor',
    'SigningResult',
    # Request Signing - Signing string
    'signed_header_names',
    'build_signing_string',
    'build_authorization_header',
    # Request Signing - Time
    'Clock',
    'SystemClock',
    'FixedClock',
    'format_http_date',
    # Request Signing - Utilities
    'calculate_content_sha256',
    'verify_signature',
    # Transports
    'Transport',
    'RequestsTransport',
    'RawStreamTransport',
    'ResponseParser',
    'SocketConnector',
    'serialize_request',
    'parse_response',
    # Configuration
    'ClientSettings',
    'OciProfile',
    'load_profile',
    'load_identity',
    # Client
    'OciClient',
    'create_client',
    'create_transport',
    'sign_and_send',
]
