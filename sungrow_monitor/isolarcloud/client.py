"""
iSolarCloud API client.

This module provides an authenticated HTTP client for the plant and
device endpoints of the iSolarCloud open API. Every call is a single
POST carrying the app key in the body and the access token as a bearer
header; failures are reported through the shared result envelope.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..envelope import ApiResponse
from ..oauth.credential_store import Credentials
from . import endpoints
from .exceptions import IsolarCloudAPIError, NotAuthenticatedError
from .models import Plant, PlantDevice

logger = logging.getLogger(__name__)


class IsolarCloudClient:
    """
    Authenticated HTTP client for iSolarCloud platform APIs.

    Example:
        client = IsolarCloudClient(app.get_stored_credentials())
        for plant in client.get_plant_list():
            print(plant.ps_name)
    """

    def __init__(
        self,
        credentials: Optional[Credentials],
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize iSolarCloud client.

        Args:
            credentials: Signed-in session credentials
            timeout: HTTP timeout in seconds
            session: Requests session (created if not provided)
        """
        self.credentials = credentials
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        """
        POST to a platform endpoint and unwrap the envelope.

        Returns:
            ``result_data`` of a successful response

        Raises:
            NotAuthenticatedError: If there is no access token
            IsolarCloudAPIError: On transport, decoding or API errors
        """
        credentials = self.credentials
        if credentials is None or not credentials.is_authenticated:
            raise NotAuthenticatedError("Not authenticated")

        url = f"{credentials.effective_gateway_url}{endpoint}"
        payload = {"appkey": credentials.app_key, **body}
        logger.debug(f"POST {url}")

        try:
            response = self.session.post(
                url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {credentials.access_token}",
                    "x-access-key": credentials.secret_key,
                },
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Network error calling {endpoint}: {e}")
            raise IsolarCloudAPIError(f"Network error: {e}") from e

        try:
            envelope = ApiResponse.from_json(response.json())
        except ValueError as e:
            logger.error(f"Invalid response from {endpoint} (HTTP {response.status_code})")
            raise IsolarCloudAPIError(
                f"Invalid response from {endpoint} (HTTP {response.status_code}): {e}"
            ) from e

        if not envelope.ok:
            logger.error(
                f"API error from {endpoint}: {envelope.result_code} - {envelope.result_msg}"
            )
            raise IsolarCloudAPIError(
                f"API error: {envelope.result_msg}", result_code=envelope.result_code
            )

        return envelope.result_data

    @staticmethod
    def _page_list(data: Any, endpoint: str) -> List[Dict[str, Any]]:
        if not isinstance(data, dict):
            raise IsolarCloudAPIError(f"Unexpected result_data from {endpoint}")
        return data.get("pageList") or []

    def get_plant_list(self, page: int = 1, size: int = 50) -> List[Plant]:
        """
        List the plants visible to the signed-in user.

        Args:
            page: Page number (1-based)
            size: Page size

        Returns:
            List of Plant objects
        """
        data = self._post(endpoints.PLANT_LIST, {"page": page, "size": size})
        try:
            plants = [
                Plant.from_dict(item)
                for item in self._page_list(data, endpoints.PLANT_LIST)
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise IsolarCloudAPIError(f"Invalid plant entry: {e!r}") from e

        logger.info(f"Loaded {len(plants)} plants")
        return plants

    def get_device_list(self, ps_id: int, page: int = 1, size: int = 50) -> List[PlantDevice]:
        """
        List the devices of a plant.

        Args:
            ps_id: Plant identifier
            page: Page number (1-based)
            size: Page size

        Returns:
            List of PlantDevice objects
        """
        data = self._post(
            endpoints.DEVICE_LIST, {"ps_id": str(ps_id), "page": page, "size": size}
        )
        try:
            return [
                PlantDevice.from_dict(item)
                for item in self._page_list(data, endpoints.DEVICE_LIST)
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise IsolarCloudAPIError(f"Invalid device entry: {e!r}") from e

    def get_device_point_data(
        self, device_type: int, ps_key: str, point_ids: List[int]
    ) -> List[Dict[str, Any]]:
        """
        Fetch real-time measuring points of a device.

        Args:
            device_type: Device type code
            ps_key: Device key from the device list
            point_ids: Measuring point identifiers

        Returns:
            One ``device_point`` mapping per returned device
        """
        data = self._post(
            endpoints.DEVICE_REALTIME_DATA,
            {
                "device_type": device_type,
                "ps_key_list": [ps_key],
                "point_id_list": [str(point_id) for point_id in point_ids],
                "is_get_point_dict": "1",
            },
        )
        if not isinstance(data, dict):
            raise IsolarCloudAPIError(
                f"Unexpected result_data from {endpoints.DEVICE_REALTIME_DATA}"
            )
        try:
            return [
                item.get("device_point") or {}
                for item in data.get("device_point_list") or []
            ]
        except (AttributeError, TypeError) as e:
            raise IsolarCloudAPIError(f"Invalid device point entry: {e!r}") from e
