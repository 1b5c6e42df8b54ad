"""Centralized error definitions for relaymail."""

from enum import Enum
from typing import Any, Dict


## Error Categories


class ErrorCategory(Enum):
    """Categories of errors for better handling."""

    NETWORK = "network"
    TLS = "tls"
    AUTHENTICATION = "authentication"
    ENVELOPE = "envelope"
    TRANSMISSION = "transmission"
    FILE_SYSTEM = "file_system"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


## Custom Exceptions


class RelayMailError(Exception):
    """Base exception for all relaymail errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "An error occurred"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        """Initialise RelayMailError with optional message and details."""
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def smtp_code(self) -> int | None:
        """SMTP reply code that caused the error, if the server sent one."""
        return self.details.get("smtp_code")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to a dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Network Errors


class NetworkError(RelayMailError):
    """Base exception for network-related errors."""

    category = ErrorCategory.NETWORK
    user_message = "A network error occurred"


class SMTPConnectionError(NetworkError):
    """Dialing the server or the opening handshake failed."""

    user_message = "Failed to connect to SMTP server"


class TeardownError(NetworkError):
    """QUIT failed. Raised and discarded inside the exchange only."""

    user_message = "Failed to close SMTP session"


## TLS Errors


class TLSUpgradeError(RelayMailError):
    """STARTTLS or the TLS handshake failed."""

    category = ErrorCategory.TLS
    user_message = "Failed to establish an encrypted connection"


## Authentication Errors


class AuthenticationError(RelayMailError):
    """Credential rejected by the server or refused locally."""

    category = ErrorCategory.AUTHENTICATION
    user_message = "SMTP authentication failed"


## Envelope Errors


class EnvelopeError(RelayMailError):
    """Base exception for MAIL FROM / RCPT TO failures."""

    category = ErrorCategory.ENVELOPE
    user_message = "The server rejected the message envelope"


class SenderRejectedError(EnvelopeError):
    """MAIL FROM was rejected."""

    user_message = "The server rejected the sender address"


class RecipientRejectedError(EnvelopeError):
    """RCPT TO was rejected for one recipient."""

    user_message = "The server rejected a recipient address"


## Transmission Errors


class BodyTransmissionError(RelayMailError):
    """DATA phase failed: producer, flush or end-of-data reply."""

    category = ErrorCategory.TRANSMISSION
    user_message = "Failed to transmit the message body"


## File System Errors


class FileSystemError(RelayMailError):
    """Base exception for file system-related errors."""

    category = ErrorCategory.FILE_SYSTEM
    user_message = "A file system error occurred"


## Configuration Errors


class ConfigurationError(RelayMailError):
    """Base exception for configuration-related errors."""

    category = ErrorCategory.CONFIGURATION
    user_message = "A configuration error occurred"


class InvalidConfigError(ConfigurationError):
    """Exception for invalid configuration settings."""

    user_message = "Invalid configuration settings"


## Utility Functions


def format_error_message(error: Exception) -> str:
    """Format an error message for display."""
    if isinstance(error, RelayMailError):
        if error.smtp_code is not None:
            return f"{error.message} ({error.smtp_code})"
        return error.message
    else:
        return "An unexpected error occurred - check logs for details."
