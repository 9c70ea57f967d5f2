"""
OCI request signer

This module provides the main signer: it turns a request descriptor into a
signing string, signs it with RSA PKCS#1 v1.5 over SHA-256 and assembles
the Authorization header.
"""

import logging
from datetime import datetime
from typing import Optional

from ..exceptions import SigningError, ErrorCodes
from .types import RequestDescriptor, SigningIdentity, SigningResult
from .clock import (
    Clock,
    SystemClock,
    wait_for_utc_time,
    format_http_date,
    DEFAULT_WAIT_ATTEMPTS,
    DEFAULT_WAIT_DELAY,
)
from .signing_string import (
    signed_header_names,
    build_signing_string,
    build_authorization_header,
)
from .utils import (
    calculate_content_sha256,
    encode_base64,
    load_rsa_private_key,
    rsa_sign_sha256,
    PerformanceTimer,
    redact,
)

logger = logging.getLogger(__name__)


class RequestSigner:
    """
    Signer for OCI API requests

    The private key is parsed once at construction and is read-only
    afterwards, so one signer may be shared between threads.
    """

    def __init__(
        self,
        identity: SigningIdentity,
        clock: Optional[Clock] = None,
        clock_wait_attempts: int = DEFAULT_WAIT_ATTEMPTS,
        clock_wait_delay: float = DEFAULT_WAIT_DELAY,
        log_signing_string: bool = False
    ):
        """
        Initialize the signer.

        Args:
            identity: Identity whose private key signs the requests
            clock: UTC time source (system clock by default)
            clock_wait_attempts: Readings to take while the clock is unset
            clock_wait_delay: Seconds between readings
            log_signing_string: Log the signing string at debug level

        Raises:
            SigningError: If the private key is unusable
        """
        if not isinstance(identity, SigningIdentity):
            raise SigningError(
                "identity must be a SigningIdentity instance",
                ErrorCodes.INVALID_PRIVATE_KEY
            )

        self.identity = identity
        self.clock = clock or SystemClock()
        self.clock_wait_attempts = clock_wait_attempts
        self.clock_wait_delay = clock_wait_delay
        self.log_signing_string = log_signing_string
        self._private_key = load_rsa_private_key(identity)

        logger.debug(f"Initialized request signer for key {redact(identity.key_fingerprint)}")

    @property
    def key_id(self) -> str:
        return self.identity.key_id

    def sign_request(
        self,
        request: RequestDescriptor,
        timestamp: Optional[datetime] = None
    ) -> SigningResult:
        """
        Sign a request.

        Args:
            request: Request to sign
            timestamp: Time to sign with; the clock is used when omitted

        Returns:
            SigningResult: Signing string, signature and Authorization value

        Raises:
            TimeUnavailableError: If the clock has no valid reading
            SigningError: If signing fails
        """
        timer = PerformanceTimer()

        if timestamp is None:
            timestamp = wait_for_utc_time(
                self.clock,
                attempts=self.clock_wait_attempts,
                delay=self.clock_wait_delay
            )
        date = format_http_date(timestamp)

        signed_headers = signed_header_names(request.method)
        content_sha256 = None
        content_length = None
        if request.method.has_signed_body:
            content_sha256 = calculate_content_sha256(request.body_bytes)
            content_length = request.content_length

        signing_string = build_signing_string(request, date, content_sha256)
        if self.log_signing_string:
            logger.debug(f"Signing string:\n{signing_string}")

        signature = self._sign(signing_string)
        authorization = build_authorization_header(self.key_id, signed_headers, signature)

        logger.debug(
            f"Signed {request.method.value} {request.host}{request.path} "
            f"in {timer.elapsed_ms():.2f}ms"
        )

        return SigningResult(
            signing_string=signing_string,
            signature=signature,
            authorization=authorization,
            date=date,
            signed_headers=signed_headers,
            content_sha256=content_sha256,
            content_length=content_length
        )

    def _sign(self, signing_string: str) -> str:
        """
        Sign the signing string and base64-encode the signature.

        Raises:
            SigningError: If the primitive fails or returns no signature
        """
        try:
            signature = rsa_sign_sha256(self._private_key, signing_string.encode("utf-8"))
        except Exception as e:
            raise SigningError(
                f"Request signing failed: {type(e).__name__}",
                ErrorCodes.SIGNING_FAILED,
                {"key_id": self.key_id}
            ) from e

        if len(signature) * 8 < self._private_key.key_size - 7:
            raise SigningError(
                "Signature is shorter than the key modulus",
                ErrorCodes.SIGNING_FAILED,
                {"key_id": self.key_id, "length": len(signature)}
            )

        return encode_base64(signature)


def create_signer(identity: SigningIdentity, clock: Optional[Clock] = None, **kwargs) -> RequestSigner:
    """
    Create a new request signer.

    Args:
        identity: Signing identity
        clock: Optional UTC time source
        **kwargs: Additional RequestSigner arguments

    Returns:
        RequestSigner: Configured signer instance
    """
    return RequestSigner(identity, clock=clock, **kwargs)


def sign_request(
    identity: SigningIdentity,
    request: RequestDescriptor,
    timestamp: Optional[datetime] = None,
    clock: Optional[Clock] = None
) -> SigningResult:
    """
    Sign a request with the given identity.

    Args:
        identity: Signing identity
        request: Request to sign
        timestamp: Optional time to sign with
        clock: Optional UTC time source

    Returns:
        SigningResult: Signing result
    """
    return create_signer(identity, clock=clock).sign_request(request, timestamp)
