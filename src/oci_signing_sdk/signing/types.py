"""
Type definitions for request signing functionality

This module provides the data classes shared by the signing engine and the
transports: the signing identity, request and response descriptors, header
fields and the per-request signing result.
"""

import re
from typing import Dict, Optional, Sequence, Tuple, Union, Mapping, Iterable
from dataclasses import dataclass, field
from enum import Enum

from ..exceptions import ConfigError, ErrorCodes


# Capacity limits checked before any request text is assembled. Oversized
# input is rejected, never truncated.
MAX_HOST_LENGTH = 253
MAX_PATH_LENGTH = 8192
MAX_HEADER_NAME_LENGTH = 256
MAX_HEADER_VALUE_LENGTH = 8192
MAX_TRUST_ANCHOR_LENGTH = 64 * 1024

DEFAULT_CONTENT_TYPE = "application/json"

# Set by the transports themselves; callers may not supply them.
RESERVED_HEADER_NAMES = frozenset({
    "date", "authorization", "host", "x-content-sha256",
    "content-type", "content-length", "connection", "transfer-encoding",
})

_HEADER_NAME_PATTERN = re.compile(r'^[!#$%&\'*+\-.0-9A-Z^_`a-z|~]+$')
_FORBIDDEN_HOST_CHARS = re.compile(r'[\s/?#@\\\x00-\x1f\x7f]')
_FORBIDDEN_PATH_CHARS = re.compile(r'[\s\x00-\x1f\x7f]')
_FORBIDDEN_VALUE_CHARS = re.compile(r'[\r\n\x00]')


class HttpMethod(str, Enum):
    """HTTP methods supported by the OCI signing scheme"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: Union[str, "HttpMethod"]) -> "HttpMethod":
        """
        Parse an HTTP method case-insensitively.

        Args:
            value: Method name or HttpMethod

        Returns:
            HttpMethod: Parsed method

        Raises:
            ConfigError: If the method is not one of the supported values
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ConfigError(
            f"Unsupported HTTP method: {value!r}",
            ErrorCodes.INVALID_METHOD,
            {"method": str(value), "supported": [m.value for m in cls]}
        )

    @property
    def has_signed_body(self) -> bool:
        """True when the body digest, length and type are part of the signature."""
        return self in (HttpMethod.POST, HttpMethod.PUT)


def validate_header_name(name: str) -> None:
    """
    Validate a header name (RFC 7230 token).

    Raises:
        ConfigError: If the name is empty, too long or contains illegal characters
    """
    if not isinstance(name, str) or not name:
        raise ConfigError("Header name cannot be empty", ErrorCodes.INVALID_HEADER)
    if len(name) > MAX_HEADER_NAME_LENGTH:
        raise ConfigError(
            f"Header name exceeds {MAX_HEADER_NAME_LENGTH} characters",
            ErrorCodes.INPUT_TOO_LARGE,
            {"length": len(name)}
        )
    if not _HEADER_NAME_PATTERN.match(name):
        raise ConfigError(
            f"Invalid header name: {name!r}",
            ErrorCodes.INVALID_HEADER,
            {"header": name}
        )


def validate_header_value(name: str, value: str) -> None:
    """
    Validate a header value.

    Raises:
        ConfigError: If the value contains line terminators or is too long
    """
    if not isinstance(value, str):
        raise ConfigError(
            f"Header value for {name!r} must be a string",
            ErrorCodes.INVALID_HEADER,
            {"header": name}
        )
    if len(value) > MAX_HEADER_VALUE_LENGTH:
        raise ConfigError(
            f"Header value for {name!r} exceeds {MAX_HEADER_VALUE_LENGTH} characters",
            ErrorCodes.INPUT_TOO_LARGE,
            {"header": name, "length": len(value)}
        )
    if _FORBIDDEN_VALUE_CHARS.search(value):
        raise ConfigError(
            f"Header value for {name!r} contains a line terminator",
            ErrorCodes.INVALID_HEADER,
            {"header": name}
        )


@dataclass(frozen=True)
class SigningIdentity:
    """
    Identity used to sign requests

    Attributes:
        tenancy_ocid: The tenancy OCID
        user_ocid: The user OCID
        key_fingerprint: Fingerprint of the uploaded API public key
        private_key: PEM text of the RSA private key
        passphrase: Optional passphrase for an encrypted private key
    """
    tenancy_ocid: str
    user_ocid: str
    key_fingerprint: str
    private_key: Union[str, bytes] = field(repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        """Validate identity after initialization"""
        for attr in ("tenancy_ocid", "user_ocid", "key_fingerprint"):
            value = getattr(self, attr)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"{attr} cannot be empty", ErrorCodes.INVALID_IDENTITY, {"field": attr})
            if "/" in value or _FORBIDDEN_VALUE_CHARS.search(value) or '"' in value:
                raise ConfigError(
                    f"{attr} contains characters not allowed in a key ID",
                    ErrorCodes.INVALID_IDENTITY,
                    {"field": attr}
                )

        if not self.private_key:
            raise ConfigError("Private key cannot be empty", ErrorCodes.INVALID_IDENTITY, {"field": "private_key"})

    @property
    def key_id(self) -> str:
        """The keyId value: tenancy/user/fingerprint"""
        return f"{self.tenancy_ocid}/{self.user_ocid}/{self.key_fingerprint}"

    @property
    def private_key_bytes(self) -> bytes:
        if isinstance(self.private_key, bytes):
            return self.private_key
        return self.private_key.encode("utf-8")

    @property
    def passphrase_bytes(self) -> Optional[bytes]:
        if self.passphrase is None or self.passphrase == "":
            return None
        return self.passphrase.encode("utf-8")


@dataclass(frozen=True)
class HeaderField:
    """
    A header name with an optional value

    Outbound headers carry both; headers requested from a response carry
    only the name.
    """
    name: str
    value: Optional[str] = None

    def __post_init__(self):
        validate_header_name(self.name)
        if self.value is not None:
            validate_header_value(self.name, self.value)


HeadersInput = Union[Mapping[str, str], Iterable[Union[HeaderField, Tuple[str, str]]], None]


def normalize_headers(headers: HeadersInput) -> Tuple[HeaderField, ...]:
    """
    Normalize outbound headers into a tuple of HeaderField with values.

    Args:
        headers: Mapping, sequence of HeaderField or (name, value) pairs

    Returns:
        tuple: Validated header fields, in the order given

    Raises:
        ConfigError: If a header has no value or uses a name the transports
            set themselves (compared case-insensitively)
    """
    if headers is None:
        return ()

    items = headers.items() if isinstance(headers, Mapping) else headers
    result = []
    for item in items:
        if isinstance(item, HeaderField):
            header = item
        else:
            name, value = item
            header = HeaderField(name, value)
        if header.value is None:
            raise ConfigError(
                f"Outbound header {header.name!r} has no value",
                ErrorCodes.INVALID_HEADER,
                {"header": header.name}
            )
        if header.name.lower() in RESERVED_HEADER_NAMES:
            raise ConfigError(
                f"Outbound header {header.name!r} is set by the transport and cannot be overridden",
                ErrorCodes.INVALID_HEADER,
                {"header": header.name}
            )
        result.append(header)
    return tuple(result)


def normalize_requested_headers(names: Optional[Iterable[Union[str, HeaderField]]]) -> Tuple[str, ...]:
    """
    Normalize the response header names a caller wants captured.

    Names are kept case-sensitive and de-duplicated in order.
    """
    if names is None:
        return ()
    if isinstance(names, str):
        names = [names]

    result = []
    for item in names:
        name = item.name if isinstance(item, HeaderField) else item
        validate_header_name(name)
        if name not in result:
            result.append(name)
    return tuple(result)


@dataclass
class RequestDescriptor:
    """
    Request to be signed and sent

    Attributes:
        host: API endpoint host, e.g. objectstorage.us-phoenix-1.oraclecloud.com
        path: Request path starting with "/", including any query string
        method: HTTP method
        body: Optional request body; text is encoded as UTF-8
        content_type: Content type of the body
        headers: Additional outbound headers
        trust_anchor: Root CA certificate text used to validate the server;
            None means an explicitly insecure connection
        port: TCP port
        scheme: URL scheme used in the request line
    """
    host: str
    path: str
    method: Union[HttpMethod, str] = HttpMethod.GET
    body: Optional[Union[str, bytes]] = None
    content_type: Optional[str] = None
    headers: HeadersInput = ()
    trust_anchor: Optional[str] = field(default=None, repr=False)
    port: int = 443
    scheme: str = "https"

    def __post_init__(self):
        """Validate and normalize the request"""
        self.method = HttpMethod.parse(self.method)

        if not isinstance(self.host, str) or not self.host:
            raise ConfigError("Request host cannot be empty", ErrorCodes.INVALID_HOST)
        if len(self.host) > MAX_HOST_LENGTH:
            raise ConfigError(
                f"Request host exceeds {MAX_HOST_LENGTH} characters",
                ErrorCodes.INPUT_TOO_LARGE,
                {"length": len(self.host)}
            )
        if _FORBIDDEN_HOST_CHARS.search(self.host):
            raise ConfigError(f"Invalid request host: {self.host!r}", ErrorCodes.INVALID_HOST, {"host": self.host})

        if not isinstance(self.path, str) or not self.path.startswith("/"):
            raise ConfigError("Request path must start with '/'", ErrorCodes.INVALID_PATH, {"path": self.path})
        if len(self.path) > MAX_PATH_LENGTH:
            raise ConfigError(
                f"Request path exceeds {MAX_PATH_LENGTH} characters",
                ErrorCodes.INPUT_TOO_LARGE,
                {"length": len(self.path)}
            )
        if _FORBIDDEN_PATH_CHARS.search(self.path):
            raise ConfigError("Request path contains whitespace or control characters", ErrorCodes.INVALID_PATH)

        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        elif self.body is not None and not isinstance(self.body, (bytes, bytearray)):
            raise ConfigError(
                f"Body must be str or bytes, got {type(self.body).__name__}",
                ErrorCodes.INVALID_CONFIG
            )
        elif isinstance(self.body, bytearray):
            self.body = bytes(self.body)

        if self.content_type is None:
            self.content_type = DEFAULT_CONTENT_TYPE
        validate_header_value("content-type", self.content_type)

        self.headers = normalize_headers(self.headers)

        if self.trust_anchor is not None and len(self.trust_anchor) > MAX_TRUST_ANCHOR_LENGTH:
            raise ConfigError(
                f"Trust anchor exceeds {MAX_TRUST_ANCHOR_LENGTH} characters",
                ErrorCodes.INPUT_TOO_LARGE,
                {"length": len(self.trust_anchor)}
            )

        if self.scheme not in ("https", "http"):
            raise ConfigError(f"Unsupported scheme: {self.scheme!r}", ErrorCodes.INVALID_CONFIG)
        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port!r}", ErrorCodes.INVALID_CONFIG)

    @property
    def body_bytes(self) -> bytes:
        return self.body or b""

    @property
    def content_length(self) -> int:
        return len(self.body_bytes)

    @property
    def url(self) -> str:
        """Absolute URL of the request"""
        default_port = 443 if self.scheme == "https" else 80
        netloc = self.host if self.port == default_port else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}{self.path}"


@dataclass(frozen=True)
class SigningResult:
    """
    Result of signing one request

    Attributes:
        signing_string: The exact text that was signed
        signature: Base64-encoded RSA signature
        authorization: Value of the Authorization header
        date: HTTP-date that was signed and must be sent as the date header
        signed_headers: Names of the signed headers, in signing order
        content_sha256: Base64 SHA-256 of the body (POST/PUT only)
        content_length: Body length in bytes (POST/PUT only)
    """
    signing_string: str = field(repr=False)
    signature: str
    authorization: str
    date: str
    signed_headers: Tuple[str, ...]
    content_sha256: Optional[str] = None
    content_length: Optional[int] = None


@dataclass
class ResponseDescriptor:
    """
    Response from an API call

    Attributes:
        status_code: HTTP status code, None when the call failed locally
        body: Response body text
        headers: Captured response headers (only the names requested)
        opc_request_id: Value of the opc-request-id response header
        error_message: Transport error message, set only when the call failed
    """
    status_code: Optional[int] = None
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    opc_request_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_error(cls, message: str) -> "ResponseDescriptor":
        """Build the error form of a response."""
        return cls(status_code=None, body="", headers={}, error_message=message)

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    @property
    def is_error(self) -> bool:
        return self.error_message is not None

    def header(self, name: str) -> Optional[str]:
        """Get a captured header value by its exact name."""
        return self.headers.get(name)


# Type aliases for convenience
RequestedHeaders = Optional[Sequence[Union[str, HeaderField]]]
