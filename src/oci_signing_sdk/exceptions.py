"""
Exception classes for OCI Signing SDK
"""

from typing import Optional, Dict, Any


class OciSdkError(Exception):
    """Base exception for all OCI Signing SDK errors"""
    
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
    
    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (code: {self.error_code}, details: {self.details})"
        return f"{self.message} (code: {self.error_code})"


class ConfigError(OciSdkError):
    """Exception raised for malformed requests, settings or config files"""
    
    def __init__(self, message: str, error_code: str = "INVALID_CONFIG", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class SigningError(OciSdkError):
    """Exception raised when the private key cannot be used to sign a request"""
    
    def __init__(self, message: str, error_code: str = "SIGNING_FAILED", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class TimeUnavailableError(OciSdkError):
    """
    Exception raised when no valid UTC wall-clock reading is available.
    
    This is transient: the caller should retry once the clock is set.
    """
    
    retryable = True
    
    def __init__(self, message: str, error_code: str = "TIME_UNAVAILABLE", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class TransportError(OciSdkError):
    """Exception raised for connection failures, malformed responses and read timeouts"""
    
    # A transport error never carries an HTTP status; rejected requests come
    # back as regular responses instead.
    status_code = None
    
    def __init__(self, message: str, error_code: str = "TRANSPORT_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class ErrorCodes:
    """Standard error codes for programmatic handling"""
    
    # Request / configuration errors
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_METHOD = "INVALID_METHOD"
    INVALID_HOST = "INVALID_HOST"
    INVALID_PATH = "INVALID_PATH"
    INVALID_HEADER = "INVALID_HEADER"
    INPUT_TOO_LARGE = "INPUT_TOO_LARGE"
    INVALID_IDENTITY = "INVALID_IDENTITY"
    CONFIG_FILE_ERROR = "CONFIG_FILE_ERROR"
    
    # Signing errors
    INVALID_PRIVATE_KEY = "INVALID_PRIVATE_KEY"
    INVALID_PASSPHRASE = "INVALID_PASSPHRASE"
    SIGNING_FAILED = "SIGNING_FAILED"
    
    # Time errors
    TIME_UNAVAILABLE = "TIME_UNAVAILABLE"
    
    # Transport errors
    CONNECTION_FAILED = "CONNECTION_FAILED"
    TIMEOUT = "TIMEOUT"
    READ_TIMEOUT = "READ_TIMEOUT"
    MALFORMED_STATUS_LINE = "MALFORMED_STATUS_LINE"
    UNEXPECTED_EOF = "UNEXPECTED_EOF"
    REQUEST_FAILED = "REQUEST_FAILED"
