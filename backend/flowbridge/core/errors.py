# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for FlowBridge.

All exceptions inherit from FlowBridgeError for consistent error handling.
The status code on each class is what the API layer answers with.
"""

from typing import Optional, List


class FlowBridgeError(Exception):
    """Base exception for all FlowBridge errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        """
        Initialize FlowBridge error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            details: Additional error details
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for API response."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details
        }


class NotFoundError(FlowBridgeError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        """
        Initialize not found error.

        Args:
            resource: Type of resource (e.g., "Flow", "Interface")
            identifier: Resource identifier
            details: Additional error details
        """
        message = f"{resource} not found: {identifier}"
        super().__init__(message, status_code=404, details=details)
        self.resource = resource
        self.identifier = identifier


class DisabledError(FlowBridgeError):
    """Resource exists but is administratively disabled."""

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        message = f"{resource} is disabled: {identifier}"
        super().__init__(message, status_code=409, details=details)
        self.resource = resource
        self.identifier = identifier


class GraphError(FlowBridgeError):
    """Flow graph cannot be executed (entry node, edges, node kinds)."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=400, details=details)
        self.field = field


class UnknownNodeKindError(GraphError):
    """No executor is registered for a node kind."""

    def __init__(self, kind: str, node_id: Optional[str] = None, details: Optional[dict] = None):
        message = f"No executor registered for node kind: {kind}"
        if node_id:
            message = f"{message} (node '{node_id}')"
        super().__init__(message, field="kind", details=details)
        self.kind = kind
        self.node_id = node_id


class UnsafeOperatorError(FlowBridgeError):
    """Condition uses an operator outside the whitelist."""

    def __init__(self, operator: str, allowed: Optional[List[str]] = None):
        message = f"Operator not allowed: {operator!r}"
        if allowed:
            message = f"{message}. Allowed operators: {', '.join(allowed)}"
        super().__init__(message, status_code=400, details={"operator": operator})
        self.operator = operator


class SchemaViolationError(FlowBridgeError):
    """Condition does not conform to the governing interface schema."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=400, details=details)
        self.field = field


class FormatError(FlowBridgeError):
    """Structured input (XML, CSV, ...) could not be parsed."""

    def __init__(self, message: str, format_name: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=422, details=details)
        self.format_name = format_name


class MissingFieldError(FlowBridgeError):
    """A strict mapping resolved to an absent value."""

    def __init__(self, field: str, details: Optional[dict] = None):
        super().__init__(f"Required field missing: {field}", status_code=422, details=details)
        self.field = field


class ValidationError(FlowBridgeError):
    """Validation failed."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize validation error.

        Args:
            message: Validation error message
            field: Field that failed validation
            details: Additional error details
        """
        super().__init__(message, status_code=400, details=details)
        self.field = field


class ConnectivityError(FlowBridgeError):
    """Outbound call failed after exhausting its retry attempts."""

    def __init__(self, message: str, attempts: Optional[List[dict]] = None, details: Optional[dict] = None):
        details = dict(details or {})
        details["attempts"] = list(attempts or [])
        super().__init__(message, status_code=502, details=details)
        self.attempts = details["attempts"]


class AuthenticationError(FlowBridgeError):
    """Credentials could not be resolved or were rejected."""

    def __init__(self, message: str, adapter_id: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=401, details=details)
        self.adapter_id = adapter_id


class DisabledFeatureError(FlowBridgeError):
    """Feature is refused by policy."""

    def __init__(self, message: str, feature: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=403, details=details)
        self.feature = feature


class ConfigurationError(FlowBridgeError):
    """Configuration error."""

    def __init__(self, message: str, config_file: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize configuration error.

        Args:
            message: Configuration error message
            config_file: Configuration file path
            details: Additional error details
        """
        super().__init__(message, status_code=500, details=details)
        self.config_file = config_file


class NodeExecutionError(FlowBridgeError):
    """A node failed while running; wraps the underlying cause."""

    def __init__(self, node_id: str, cause: Exception):
        message = f"Node '{node_id}' failed: {cause}"
        status_code = getattr(cause, "status_code", 500)
        details = dict(getattr(cause, "details", None) or {})
        super().__init__(message, status_code=status_code, details=details)
        self.node_id = node_id
        self.cause = cause


# Error Message Utilities

def sanitize_error_for_user(error: Exception, include_type: bool = True) -> str:
    """
    Sanitize error messages for user display.
    Removes stack traces and sensitive information.

    Args:
        error: The exception to sanitize
        include_type: Whether to include exception type

    Returns:
        User-friendly error message without stack trace
    """
    error_msg = str(error).strip()

    # Remove common sensitive paths
    error_msg = error_msg.replace("/app/", "")
    error_msg = error_msg.replace("/configs/", "")

    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."

    if include_type:
        return f"{error.__class__.__name__}: {error_msg}"

    return error_msg
