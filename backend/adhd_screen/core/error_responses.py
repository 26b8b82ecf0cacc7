"""
Standardized error response messages and builders.

User-facing messages live here so every endpoint reports failures the same way
and never leaks implementation details. Log messages stay at the call site.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Use "Please try again later." for transient server errors

Usage:
    from adhd_screen.core.error_responses import ErrorMessages, raise_server_error

    raise_server_error(ErrorMessages.REPORT_GENERATION_FAILED)
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates."""

    # ==========================================================================
    # Server Errors (5xx)
    # ==========================================================================
    REPORT_GENERATION_FAILED = (
        "Failed to generate the screening report. Please try again later."
    )
    SCORING_CONFIGURATION_INVALID = (
        "Scoring configuration is invalid on the server."
    )

    # ==========================================================================
    # Client Errors (4xx)
    # ==========================================================================
    @staticmethod
    def request_body_limit(max_bytes: int) -> str:
        """Message for a body exceeding the configured size limit."""
        return f"Request body too large (limit: {max_bytes} bytes)."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_server_error(detail: str) -> NoReturn:
    """Raise a 500 Internal Server Error exception.

    Use when scoring cannot run for reasons outside the caller's control.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
