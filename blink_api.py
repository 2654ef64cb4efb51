"""
Blink resource enumeration.

Read-only queries against the regional Blink host: networks with their
cameras, per-camera status (for the thumbnail reference) and the paginated
media listing. Every request failure is raised as FetchError; the poll loop
decides whether that skips a camera, ends pagination or retries the cycle.
"""

from typing import List

import requests
from pydantic import ValidationError

from errors import FetchError
from models import BlinkCamera, BlinkMediaItem, BlinkMediaPage, BlinkNetwork, BlinkSession
from tools import logger, VERBOSE

# Fixed historical epoch, i.e. "all media"
MEDIA_SINCE = "2015-04-19T23:11:20+0000"


class BlinkApi(object):
    """Client for the Blink listing endpoints."""

    USAGE_URI = "/api/v1/camera/usage"
    CAMERA_URI = "/network/{network_id}/camera/{camera_id}"
    MEDIA_CHANGED_URI = "/api/v1/accounts/{account_id}/media/changed"

    def __init__(self, http=None, timeout=None):
        self._http = http or requests.Session()
        self._timeout = timeout

    def _get_json(self, session: BlinkSession, endpoint: str, params=None):
        """
        Make an authenticated GET request to the regional host.

        Args:
            session: Authenticated BlinkSession
            endpoint: Path below the regional host
            params: Query parameters

        Returns:
            Decoded JSON body
        """
        url = session.base_url + endpoint
        logger.debug(f"Sending request to: '{url}' with params: '{params}'")

        try:
            res = self._http.get(
                url,
                params=params,
                headers=session.auth_headers,
                timeout=self._timeout,
            )
            res.raise_for_status()
            data = res.json()
        except (requests.RequestException, ValueError) as e:
            raise FetchError(f"GET {endpoint} failed: {e}") from e

        if VERBOSE:
            logger.debug(f"Response from {endpoint}: {data}")
        return data

    def list_networks_and_cameras(self, session: BlinkSession) -> List[BlinkNetwork]:
        """
        List the account's networks, each with its cameras.

        Raises:
            FetchError: if the request fails or the payload is malformed
        """
        data = self._get_json(session, BlinkApi.USAGE_URI)

        try:
            networks = [BlinkNetwork.from_usage(entry) for entry in data["networks"]]
        except (KeyError, TypeError, ValidationError) as e:
            raise FetchError(f"Unexpected camera usage response: {e}") from e

        logger.info(f"Found {len(networks)} network(s) with {sum(len(n.cameras) for n in networks)} camera(s)")
        return networks

    def get_camera_detail(self, session: BlinkSession, network_id: int, camera_id: int) -> BlinkCamera:
        """
        Fetch a camera's status, including its current thumbnail reference.

        Raises:
            FetchError: if the request fails or has no thumbnail
        """
        endpoint = BlinkApi.CAMERA_URI.format(network_id=network_id, camera_id=camera_id)
        data = self._get_json(session, endpoint)

        try:
            camera_status = data["camera_status"]
            return BlinkCamera(
                id=camera_id,
                name=camera_status.get("name") or str(camera_id),
                thumbnail=camera_status["thumbnail"],
            )
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise FetchError(f"Unexpected camera status for camera {camera_id}: {e}") from e

    def list_media_page(self, session: BlinkSession, page: int, since: str = MEDIA_SINCE) -> BlinkMediaPage:
        """
        Fetch one page of the media listing.

        Args:
            session: Authenticated BlinkSession
            page: 1-based page number
            since: Only list media changed after this timestamp

        Returns:
            BlinkMediaPage. A page with no raw entries marks the end of
            pagination. Entries that cannot be parsed are logged and dropped
            from items but still counted in entry_count.

        Raises:
            ValueError: if page is lower than 1
            FetchError: if the request fails
        """
        if page < 1:
            raise ValueError(f"Media pages start at 1, got {page}")

        endpoint = BlinkApi.MEDIA_CHANGED_URI.format(account_id=session.account_id)
        data = self._get_json(session, endpoint, params={"since": since, "page": page})

        entries = data.get("media") if isinstance(data, dict) else None
        if not entries:
            return BlinkMediaPage(page=page)

        items = []
        for entry in entries:
            try:
                items.append(BlinkMediaItem.from_media_entry(entry))
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping unreadable media entry on page {page}: {e}")
        return BlinkMediaPage(page=page, items=items, entry_count=len(entries))
