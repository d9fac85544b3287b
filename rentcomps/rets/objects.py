"""Listing photo retrieval via RETS GetObject.

A missing photo is an expected condition: non-success status, a textual
content-type (the server's inline error document), or a tiny payload all
return None instead of raising.
"""

import logging

from pydantic import BaseModel, ConfigDict

from rentcomps.rets.client import RetsClient

logger = logging.getLogger(__name__)

MIN_PHOTO_BYTES = 100
DEFAULT_CONTENT_TYPE = "image/jpeg"

_TEXTUAL_CONTENT_TYPES = ("text/", "application/xml", "application/json")


class Photo(BaseModel):
    """Binary photo payload and its content type."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    content_type: str


class PhotoFetcher:
    """Fetches listing photos through the shared RETS client."""

    def __init__(self, client: RetsClient, *, min_bytes: int = MIN_PHOTO_BYTES) -> None:
        self._client = client
        self._min_bytes = min_bytes

    async def fetch(self, listing_id: str, index: int = 0) -> Photo | None:
        """Fetch photo ``index`` of a listing, or None if there is none.

        Raises:
            AuthError, NetworkError, ProtocolError: From the underlying
                transaction (e.g. a 401 that persists after the retry).
        """
        params = {
            "Type": "Photo",
            "Resource": "Property",
            "ID": f"{listing_id}:{index}",
        }
        response = await self._client.get_object(params)
        if response is None:
            return None

        if not response.is_success:
            logger.info("No photo for %s:%d (HTTP %d)", listing_id, index, response.status_code)
            return None

        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        if content_type.lower().startswith(_TEXTUAL_CONTENT_TYPES):
            logger.info("No photo for %s:%d (server replied %s)", listing_id, index, content_type)
            return None

        data = response.content
        if len(data) < self._min_bytes:
            logger.info("No photo for %s:%d (payload only %d bytes)", listing_id, index, len(data))
            return None

        return Photo(data=data, content_type=content_type)
