"""Exceptions for the iSolarCloud API client."""

from typing import Optional


class IsolarCloudAPIError(Exception):
    """Base exception for iSolarCloud API errors."""

    def __init__(self, message: str, result_code: Optional[str] = None):
        super().__init__(message)
        self.result_code = result_code


class NotAuthenticatedError(IsolarCloudAPIError):
    """
    No access token is available for the session.

    Resolution:
        Sign in again: sungrow login
    """

    pass
