"""
iSolarCloud API client module.

This module provides the authenticated plant and device calls of the
iSolarCloud open API:

- IsolarCloudClient: Authenticated HTTP client for API calls
- Data models: Plant, PlantDevice

Authentication is handled by the OAuth module; the client only reads
the signed-in session credentials.
"""

from .client import IsolarCloudClient
from .exceptions import IsolarCloudAPIError, NotAuthenticatedError
from .models import Plant, PlantDevice

__all__ = [
    "IsolarCloudClient",
    "IsolarCloudAPIError",
    "NotAuthenticatedError",
    "Plant",
    "PlantDevice",
]
