"""
Utility functions for request signing

This module wraps the cryptographic primitives used by the signer: SHA-256
content digests, base64 encoding, RSA private key loading and signature
verification.
"""

import time
import logging
import base64
import hashlib
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..exceptions import SigningError, ErrorCodes
from .types import SigningIdentity

logger = logging.getLogger(__name__)

# Smallest RSA modulus the signing scheme accepts.
MIN_RSA_KEY_SIZE = 2048


def encode_base64(data: bytes) -> str:
    """
    Base64-encode bytes to ASCII text.

    Args:
        data: Bytes to encode

    Returns:
        str: Standard base64 with padding
    """
    return base64.b64encode(data).decode("ascii")


def calculate_content_sha256(content: Union[str, bytes, None]) -> str:
    """
    Calculate the x-content-sha256 value for a request body.

    The full 32-byte SHA-256 digest is encoded.

    Args:
        content: Request body (string, bytes, or None for an empty body)

    Returns:
        str: Base64-encoded SHA-256 digest
    """
    if content is None:
        content = b""
    elif isinstance(content, str):
        content = content.encode("utf-8")

    return encode_base64(hashlib.sha256(content).digest())


def load_rsa_private_key(identity: SigningIdentity) -> rsa.RSAPrivateKey:
    """
    Load and check the RSA private key of a signing identity.

    Args:
        identity: Identity holding the PEM text and optional passphrase

    Returns:
        RSAPrivateKey: Loaded private key

    Raises:
        SigningError: If the key cannot be parsed, the passphrase is missing
            or wrong, or the key is not a usable RSA key
    """
    password = identity.passphrase_bytes
    try:
        key = _load_pem_private_key(identity, password)
    except TypeError as e:
        # Only reachable without a passphrase: the key is encrypted.
        raise SigningError(
            "Private key is encrypted but no passphrase was given",
            ErrorCodes.INVALID_PASSPHRASE,
            {"key_id": identity.key_id, "reason": type(e).__name__}
        ) from None
    except ValueError as e:
        if password is not None and "password" in str(e).lower():
            raise SigningError(
                "Private key could not be decrypted with the given passphrase",
                ErrorCodes.INVALID_PASSPHRASE,
                {"key_id": identity.key_id}
            ) from None
        raise SigningError(
            "Private key is not a valid PEM-encoded key",
            ErrorCodes.INVALID_PRIVATE_KEY,
            {"key_id": identity.key_id, "reason": type(e).__name__}
        ) from None
    except UnsupportedAlgorithm:
        raise SigningError(
            "Private key uses an unsupported algorithm",
            ErrorCodes.INVALID_PRIVATE_KEY,
            {"key_id": identity.key_id}
        ) from None

    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError(
            f"Private key must be an RSA key, got {type(key).__name__}",
            ErrorCodes.INVALID_PRIVATE_KEY,
            {"key_id": identity.key_id}
        )

    if key.key_size < MIN_RSA_KEY_SIZE:
        raise SigningError(
            f"RSA key size {key.key_size} is below the minimum of {MIN_RSA_KEY_SIZE} bits",
            ErrorCodes.INVALID_PRIVATE_KEY,
            {"key_id": identity.key_id, "key_size": key.key_size}
        )

    return key


def _load_pem_private_key(identity: SigningIdentity, password: Optional[bytes]):
    try:
        return serialization.load_pem_private_key(identity.private_key_bytes, password=password)
    except TypeError:
        if password is None:
            raise
        # The key is not encrypted; a configured passphrase is ignored.
        logger.debug(f"Ignoring passphrase for unencrypted key {identity.key_fingerprint}")
        return serialization.load_pem_private_key(identity.private_key_bytes, password=None)


def rsa_sign_sha256(private_key: rsa.RSAPrivateKey, message: bytes) -> bytes:
    """
    Sign a message with RSASSA-PKCS1-v1_5 over SHA-256.

    Args:
        private_key: RSA private key
        message: Message bytes; hashed with SHA-256 before signing

    Returns:
        bytes: Raw signature, as long as the key modulus
    """
    return private_key.sign(message, padding.PKCS1v15(), hashes.SHA256())


def verify_signature(
    public_key_pem: Union[str, bytes],
    signing_string: str,
    signature: str
) -> bool:
    """
    Verify a base64 signature over a signing string.

    Args:
        public_key_pem: PEM text of the RSA public key
        signing_string: The signed text
        signature: Base64-encoded signature

    Returns:
        bool: True if the signature is valid
    """
    if isinstance(public_key_pem, str):
        public_key_pem = public_key_pem.encode("utf-8")

    public_key = serialization.load_pem_public_key(public_key_pem)
    if not isinstance(public_key, rsa.RSAPublicKey):
        return False

    try:
        public_key.verify(
            base64.b64decode(signature),
            signing_string.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256()
        )
        return True
    except (InvalidSignature, ValueError):
        return False


def public_key_fingerprint(public_key_pem: Union[str, bytes]) -> str:
    """
    Compute the OCI key fingerprint of a public key.

    The fingerprint is the colon-separated MD5 of the DER-encoded
    SubjectPublicKeyInfo, as shown in the console after a key upload.
    """
    if isinstance(public_key_pem, str):
        public_key_pem = public_key_pem.encode("utf-8")
    public_key = serialization.load_pem_public_key(public_key_pem)
    der = public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo
    )
    digest = hashlib.md5(der).hexdigest()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))


class PerformanceTimer:
    """Simple performance timer for monitoring signing operations."""

    def __init__(self):
        self.start_time = time.perf_counter()

    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000

    def reset(self) -> None:
        """Reset the timer."""
        self.start_time = time.perf_counter()


def redact(value: Optional[str], keep: int = 8) -> str:
    """
    Shorten an identifier for log output.

    Args:
        value: Identifier to shorten
        keep: Number of trailing characters to keep

    Returns:
        str: Redacted identifier
    """
    if not value:
        return ""
    if len(value) <= keep:
        return value
    return "..." + value[-keep:]
