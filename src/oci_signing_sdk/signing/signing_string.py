"""
Signing string construction for OCI request signatures

The signing string is the ordered plaintext that gets hashed and signed. The
order of the lines, and the matching ``headers="..."`` list in the
Authorization header, must be exactly what the server's verifier rebuilds.
"""

from typing import List, Optional, Tuple

from ..exceptions import SigningError, ErrorCodes
from .types import HttpMethod, RequestDescriptor

REQUEST_TARGET = "(request-target)"

# Signed for every request
BASE_SIGNED_HEADERS: Tuple[str, ...] = (REQUEST_TARGET, "date", "host")

# Additionally signed for requests carrying a body (POST, PUT)
BODY_SIGNED_HEADERS: Tuple[str, ...] = ("x-content-sha256", "content-length", "content-type")

SIGNATURE_VERSION = "1"
SIGNATURE_ALGORITHM = "rsa-sha256"


def signed_header_names(method: HttpMethod) -> Tuple[str, ...]:
    """
    Get the names of the signed headers for a method, in signing order.

    Args:
        method: HTTP method

    Returns:
        tuple: Header names
    """
    if method.has_signed_body:
        return BASE_SIGNED_HEADERS + BODY_SIGNED_HEADERS
    return BASE_SIGNED_HEADERS


class SigningStringBuilder:
    """
    Builder for the signing string of one request
    """

    def __init__(self, request: RequestDescriptor, date: str, content_sha256: Optional[str] = None):
        """
        Initialize the builder.

        Args:
            request: Request being signed
            date: HTTP-date that will be sent in the date header
            content_sha256: Base64 SHA-256 of the body, required for POST/PUT
        """
        self.request = request
        self.date = date
        self.content_sha256 = content_sha256
        self.signed_headers = signed_header_names(request.method)

    def build(self) -> str:
        """
        Build the signing string.

        Returns:
            str: Lines joined by newline, without a trailing newline

        Raises:
            SigningError: If a body digest is required but missing
        """
        lines: List[str] = []
        for name in self.signed_headers:
            lines.append(f"{name}: {self._component_value(name)}")
        return "\n".join(lines)

    def _component_value(self, name: str) -> str:
        if name == REQUEST_TARGET:
            return f"{self.request.method.value.lower()} {self.request.path}"
        if name == "date":
            return self.date
        if name == "host":
            return self.request.host
        if name == "x-content-sha256":
            if not self.content_sha256:
                raise SigningError(
                    "Content digest required but not provided",
                    ErrorCodes.SIGNING_FAILED,
                    {"component": name}
                )
            return self.content_sha256
        if name == "content-length":
            return str(self.request.content_length)
        if name == "content-type":
            return self.request.content_type
        raise SigningError(f"Unknown signed header: {name}", ErrorCodes.SIGNING_FAILED)


def build_signing_string(request: RequestDescriptor, date: str, content_sha256: Optional[str] = None) -> str:
    """
    Build the signing string for a request.

    Args:
        request: Request being signed
        date: HTTP-date that will be sent in the date header
        content_sha256: Base64 SHA-256 of the body, required for POST/PUT

    Returns:
        str: Signing string
    """
    return SigningStringBuilder(request, date, content_sha256).build()


def build_authorization_header(key_id: str, signed_headers: Tuple[str, ...], signature: str) -> str:
    """
    Build the Authorization header value.

    Args:
        key_id: tenancy/user/fingerprint key identifier
        signed_headers: Names of the signed headers, in the order they were signed
        signature: Base64-encoded signature

    Returns:
        str: Authorization header value
    """
    return (
        f'Signature version="{SIGNATURE_VERSION}",'
        f'headers="{" ".join(signed_headers)}",'
        f'keyId="{key_id}",'
        f'algorithm="{SIGNATURE_ALGORITHM}",'
        f'signature="{signature}"'
    )


def parse_authorization_header(value: str) -> dict:
    """
    Parse an Authorization header value into its parameters.

    Args:
        value: Authorization header value

    Returns:
        dict: Parameter name to value, e.g. {"keyId": ..., "headers": ...}
    """
    if not value.startswith("Signature "):
        return {}

    params = {}
    for part in value[len("Signature "):].split('",'):
        if "=" not in part:
            continue
        name, _, raw = part.partition("=")
        params[name.strip()] = raw.strip().strip('"')
    return params
