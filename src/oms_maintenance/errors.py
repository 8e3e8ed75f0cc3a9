"""
OMS Agent Maintenance Error Taxonomy.

Every failure the maintenance operations can report maps to exactly one
``ErrorCode``. The numeric value of a code is also the process exit code, so
the onboarding scripts that call the CLI can branch on it.

Internally, failures are raised as ``MaintenanceError`` subclasses. Public
operations catch them at their boundary and hand back a ``Result`` (see
``oms_maintenance.schemas.common``), so no exception crosses the API.

Security:
- NEVER include key material in error messages or details
- Paths and endpoint URLs are safe to log
"""

from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    """Machine-readable error codes. Values double as process exit codes."""

    # System configuration
    MISSING_CONFIG_FILE = 4
    MISSING_CONFIG = 5
    MISSING_CERTS = 6
    # Service/network
    HTTP_NON_200 = 7
    ERROR_SENDING_HTTP = 8
    ERROR_EXTRACTING_ATTRIBUTES = 9
    MISSING_CERT_UPDATE_ENDPOINT = 10
    # Internal
    ERROR_GENERATING_CERTS = 11
    ERROR_WRITING_TO_FILE = 12
    # User configuration/parameters
    INVALID_OPTION_PROVIDED = 64
    NON_PRIVILEGED_USER = 77


class MaintenanceError(Exception):
    """Base exception for all maintenance errors.

    All maintenance errors include:
    - code: ErrorCode reported to the caller (and used as the exit code)
    - message: Human-readable description
    - details: Structured metadata (NEVER include key material)
    """

    code: ErrorCode = ErrorCode.ERROR_SENDING_HTTP

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code.name,
            "exit_code": int(self.code),
            "message": self.message,
            "description": ERROR_CODES.get(self.code, ""),
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigFileMissingError(MaintenanceError):
    """Raised when the configuration file does not exist."""

    code = ErrorCode.MISSING_CONFIG_FILE

    def __init__(self, path: str):
        super().__init__(
            message=f"Missing configuration file: {path}",
            details={"path": path},
        )


class ConfigMissingError(MaintenanceError):
    """Raised when a required configuration field is absent or empty."""

    code = ErrorCode.MISSING_CONFIG

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message=message,
            details={"config_key": config_key} if config_key else {},
        )


# =============================================================================
# Certificate Errors
# =============================================================================


class CertificatesMissingError(MaintenanceError):
    """Raised when the identity certificate or key is absent or empty."""

    code = ErrorCode.MISSING_CERTS


class CertificateGenerationError(MaintenanceError):
    """Raised when the identity key pair could not be generated or written."""

    code = ErrorCode.ERROR_GENERATING_CERTS


# =============================================================================
# Communication Errors
# =============================================================================


class SendError(MaintenanceError):
    """Raised when a request could not be delivered (no HTTP status)."""

    code = ErrorCode.ERROR_SENDING_HTTP


class HTTPStatusError(MaintenanceError):
    """Raised when the service answered with a status other than 200."""

    code = ErrorCode.HTTP_NON_200

    def __init__(self, message: str, status_code: int):
        super().__init__(message=message, details={"status_code": status_code})
        self.status_code = status_code


# =============================================================================
# Extraction Errors
# =============================================================================


class CertUpdateEndpointMissingError(MaintenanceError):
    """Raised when the response carries no certificate update endpoint."""

    code = ErrorCode.MISSING_CERT_UPDATE_ENDPOINT


class AttributeExtractionError(MaintenanceError):
    """Raised when an expected element or attribute is missing from a response."""

    code = ErrorCode.ERROR_EXTRACTING_ATTRIBUTES


class FileWriteError(MaintenanceError):
    """Raised when an output file could not be written."""

    code = ErrorCode.ERROR_WRITING_TO_FILE


# =============================================================================
# Invocation Errors
# =============================================================================


class InvalidOptionError(MaintenanceError):
    """Raised when the CLI was invoked with an invalid option combination."""

    code = ErrorCode.INVALID_OPTION_PROVIDED


class NonPrivilegedUserError(MaintenanceError):
    """Raised when the process does not run as root or the agent user."""

    code = ErrorCode.NON_PRIVILEGED_USER

    def __init__(self, agent_user: str):
        super().__init__(
            message=f"This script must be run as root or as the {agent_user} user.",
            details={"agent_user": agent_user},
        )


# =============================================================================
# Error Code Registry (descriptions reported by to_dict)
# =============================================================================

ERROR_CODES = {
    ErrorCode.MISSING_CONFIG_FILE: "Configuration file not found",
    ErrorCode.MISSING_CONFIG: "Required configuration field missing",
    ErrorCode.MISSING_CERTS: "Identity certificate or key missing",
    ErrorCode.HTTP_NON_200: "Service returned a non-200 status",
    ErrorCode.ERROR_SENDING_HTTP: "Request could not be sent",
    ErrorCode.ERROR_EXTRACTING_ATTRIBUTES: "Expected response attribute missing",
    ErrorCode.MISSING_CERT_UPDATE_ENDPOINT: "Certificate update endpoint missing from response",
    ErrorCode.ERROR_GENERATING_CERTS: "Identity key pair generation failed",
    ErrorCode.ERROR_WRITING_TO_FILE: "Output file could not be written",
    ErrorCode.INVALID_OPTION_PROVIDED: "Invalid command-line option",
    ErrorCode.NON_PRIVILEGED_USER: "Not running as root or the agent user",
}


__all__ = [
    "ErrorCode",
    "MaintenanceError",
    # Config
    "ConfigFileMissingError",
    "ConfigMissingError",
    # Certificates
    "CertificatesMissingError",
    "CertificateGenerationError",
    # Communication
    "SendError",
    "HTTPStatusError",
    # Extraction
    "CertUpdateEndpointMissingError",
    "AttributeExtractionError",
    "FileWriteError",
    # Invocation
    "InvalidOptionError",
    "NonPrivilegedUserError",
    # Registry
    "ERROR_CODES",
]
