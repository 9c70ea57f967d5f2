"""
OCI Signing SDK - Request Signing Module

RSA-SHA256 request signatures for the OCI REST API. This module builds the
signing string, signs it and assembles the Authorization header.
"""

from .types import (
    HttpMethod,
    SigningIdentity,
    HeaderField,
    RequestDescriptor,
    ResponseDescriptor,
    SigningResult,
    DEFAULT_CONTENT_TYPE,
)

from .signer import (
    RequestSigner,
    create_signer,
    sign_request,
)

from .signing_string import (
    BASE_SIGNED_HEADERS,
    BODY_SIGNED_HEADERS,
    signed_header_names,
    build_signing_string,
    build_authorization_header,
    parse_authorization_header,
)

from .clock import (
    Clock,
    SystemClock,
    FixedClock,
    wait_for_utc_time,
    format_http_date,
)

from .utils import (
    calculate_content_sha256,
    verify_signature,
    public_key_fingerprint,
)

# Public API exports
__all__ = [
    # Core signing functionality
    'RequestSigner',
    'create_signer',
    'sign_request',
    # Types
    'HttpMethod',
    'SigningIdentity',
    'HeaderField',
    'RequestDescriptor',
    'ResponseDescriptor',
    'SigningResult',
    'DEFAULT_CONTENT_TYPE',
    # Signing string
    'BASE_SIGNED_HEADERS',
    'BODY_SIGNED_HEADERS',
    'signed_header_names',
    'build_signing_string',
    'build_authorization_header',
    'parse_authorization_header',
    # Time
    'Clock',
    'SystemClock',
    'FixedClock',
    'wait_for_utc_time',
    'format_http_date',
    # Utilities
    'calculate_content_sha256',
    'verify_signature',
    'public_key_fingerprint',
]
