"""RETS transaction client: Search, GetMetadata, GetObject over a managed session.

Every transaction runs through ``_transact``: acquire a session, send the
request, and on HTTP 401 invalidate the session and retry exactly once
with a fresh one. A second 401 raises AuthError; there is no third attempt.
"""

import logging

import httpx
from pydantic import BaseModel, Field

from rentcomps.core.errors import AuthError, NetworkError, ProtocolError
from rentcomps.core.schemas import RawRecord
from rentcomps.rets.codec import (
    REPLY_NO_RECORDS,
    REPLY_SUCCESS,
    parse_compact,
    parse_count,
    parse_reply_code,
)
from rentcomps.rets.session import RetsSession, SessionManager

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class SearchRequest(BaseModel):
    """Parameters of one RETS Search transaction."""

    search_type: str = "Property"
    class_name: str
    query: str
    select: list[str] = Field(default_factory=list)
    limit: int = Field(default=200, ge=1)
    standard_names: bool = False

    def to_params(self) -> dict[str, str]:
        params = {
            "SearchType": self.search_type,
            "Class": self.class_name,
            "Query": self.query,
            "QueryType": "DMQL2",
            "Format": "COMPACT-DECODED",
            "Limit": str(self.limit),
            "Count": "1",
            "StandardNames": "1" if self.standard_names else "0",
        }
        if self.select:
            params["Select"] = ",".join(self.select)
        return params


class SearchResponse(BaseModel):
    """Rows returned by a Search, plus the server's count when it sent one."""

    records: list[RawRecord] = Field(default_factory=list)
    count: int | None = None


class RetsClient:
    """Issues RETS transactions using sessions from a SessionManager."""

    def __init__(self, sessions: SessionManager, http: httpx.AsyncClient) -> None:
        self._sessions = sessions
        self._http = http

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Run a Search transaction and parse the COMPACT-DECODED rows.

        Raises:
            NetworkError: Transport failure or non-success HTTP status.
            AuthError: Login rejected, or 401 after one retry.
            ProtocolError: Non-zero reply code other than no-records.
        """
        logger.info("RETS search %s/%s: %s", request.search_type, request.class_name, request.query)
        response = await self._transact("Search", request.to_params())
        _raise_for_status(response, "search")

        body = response.text
        code, text = parse_reply_code(body)
        if code == REPLY_NO_RECORDS:
            logger.info("RETS search: no records found")
            return SearchResponse(records=[], count=0)
        if code != REPLY_SUCCESS:
            msg = f"RETS search error {code}: {text or 'Unknown'}"
            raise ProtocolError(msg, reply_code=code, reply_text=text)

        records = parse_compact(body)
        count = parse_count(body)
        logger.info(
            "RETS search returned %d rows (server count: %s)",
            len(records), "n/a" if count is None else count,
        )
        return SearchResponse(records=records, count=count)

    async def get_metadata(self, metadata_type: str, metadata_id: str) -> str:
        """Fetch a metadata document (COMPACT format) as text."""
        params = {"Type": metadata_type, "ID": metadata_id, "Format": "COMPACT"}
        response = await self._transact("GetMetadata", params)
        _raise_for_status(response, "metadata")

        body = response.text
        code, text = parse_reply_code(body)
        if code != REPLY_SUCCESS:
            msg = f"RETS metadata error {code}: {text or 'Unknown'}"
            raise ProtocolError(msg, reply_code=code, reply_text=text)
        return body

    async def get_object(self, params: dict[str, str]) -> httpx.Response | None:
        """Send a GetObject request and return the raw response.

        Returns None when the server advertises no GetObject capability.
        """
        try:
            return await self._transact("GetObject", params)
        except _MissingCapability:
            logger.warning("RETS server has no GetObject capability")
            return None

    async def _transact(self, capability: str, params: dict[str, str]) -> httpx.Response:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            session = await self._sessions.acquire()
            try:
                url = _capability_url(session, capability)
                response = await self._send(session, url, params)
            finally:
                await self._sessions.release(session)

            if response.status_code != httpx.codes.UNAUTHORIZED:
                return response

            await self._sessions.invalidate(session)
            if attempt < MAX_ATTEMPTS:
                logger.warning("RETS %s returned 401, retrying with a fresh session", capability)

        msg = f"RETS {capability} unauthorized after {MAX_ATTEMPTS} attempts"
        raise AuthError(msg, reply_code=None, reply_text=response.reason_phrase)

    async def _send(
        self, session: RetsSession, url: str, params: dict[str, str],
    ) -> httpx.Response:
        try:
            return await self._http.get(
                url,
                params=params,
                headers=self._sessions.request_headers(session),
                timeout=self._sessions.timeout_s,
            )
        except httpx.TimeoutException as e:
            msg = f"RETS request to {url} timed out after {self._sessions.timeout_s}s"
            raise NetworkError(msg) from e
        except httpx.HTTPError as e:
            msg = f"RETS request to {url} failed: {e}"
            raise NetworkError(msg) from e


class _MissingCapability(ProtocolError):
    pass


def _capability_url(session: RetsSession, capability: str) -> str:
    url = session.capability(capability)
    if url:
        return url
    # Some servers omit GetMetadata; it lives next to Search.
    if capability == "GetMetadata":
        search_url = session.capability("Search")
        if search_url:
            return _replace_search_segment(search_url)
    msg = f"RETS login succeeded but no {capability} capability URL found"
    raise _MissingCapability(msg)


def _replace_search_segment(url: str) -> str:
    lower = url.lower()
    idx = lower.rfind("search")
    if idx == -1:
        return url
    return url[:idx] + "getmetadata" + url[idx + len("search"):]


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    if not response.is_success:
        msg = f"RETS {operation} failed: {response.status_code} {response.reason_phrase}"
        raise NetworkError(msg)
