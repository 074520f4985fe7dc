"""Async client for the DonorConnect AI endpoint.

Every AI feature of the dashboard goes through one multiplexed endpoint:

* ``POST {endpoint}`` with body ``{"method": ..., "params": {...}}``
* ``GET {endpoint}?method=...&<params>`` for read-only calls

and receives an envelope ``{"success": bool, "data": ..., "error": ...}``.
The client is a pure passthrough: no retries, no timeout beyond the httpx
default.  ``call`` returns the envelope verbatim; ``request`` unwraps it
and raises ``ApplicationError`` when ``success`` is false.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from donorconnect.config.settings import settings
from donorconnect.org.context import ORG_HEADER, resolve_org_id

from .errors import ApplicationError, TransportError

logger = logging.getLogger(__name__)


def _encode_query_value(value: Any) -> str:
    if isinstance(value, (dict, list, tuple, bool)):
        return json.dumps(value)
    return str(value)


class AIDataClient:
    """Thin async wrapper over the multiplexed AI endpoint.

    Parameters
    ----------
    base_url:
        Root of the dashboard API. Falls back to ``settings.API_BASE_URL``.
    endpoint:
        Path of the AI endpoint. Falls back to ``settings.AI_ENDPOINT_PATH``.
    org_id:
        Organisation to act for; resolved through ``resolve_org_id`` when
        omitted.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str | None = None,
        endpoint: str | None = None,
        *,
        org_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._endpoint = endpoint or settings.AI_ENDPOINT_PATH
        self._org_id = org_id
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            transport=transport,
            headers=headers,
        )

    @property
    def org_id(self) -> str:
        return resolve_org_id(self._org_id)

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        use_post: bool = False,
    ) -> dict[str, Any]:
        """Issue one RPC call and return the decoded response envelope.

        Raises
        ------
        TransportError
            On a non-2xx HTTP status.
        httpx.HTTPError
            On network failures.
        """
        params = params or {}
        headers = {ORG_HEADER: self.org_id}

        if use_post:
            response = await self._client.post(
                self._endpoint,
                json={"method": method, "params": params},
                headers=headers,
            )
        else:
            query = [("method", method)]
            query.extend(
                (key, _encode_query_value(value))
                for key, value in params.items()
                if value is not None
            )
            response = await self._client.get(self._endpoint, params=query, headers=headers)

        if response.is_error:
            body = response.text
            logger.error(
                "API error (%s): HTTP %s %s - %s",
                method, response.status_code, response.reason_phrase, body,
            )
            raise TransportError(
                response.status_code, response.reason_phrase, body, method=method
            )

        return response.json()

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        use_post: bool = False,
    ) -> Any:
        """Call *method* and return the envelope's ``data``.

        Raises ``ApplicationError`` when the envelope reports failure.
        """
        envelope = await self.call(method, params, use_post=use_post)
        if not envelope.get("success"):
            logger.warning("API call %s failed: %s", method, envelope.get("error"))
            raise ApplicationError(envelope, method=method)
        return envelope.get("data")

    # -- named calls -----------------------------------------------------------

    async def ai_initialize(self) -> Any:
        return await self.request("aiInitialize", {"orgId": self.org_id}, use_post=True)

    async def organization_activity(self, limit: int = 20) -> Any:
        return await self.request("organizationActivity", {"orgId": self.org_id, "limit": limit})

    async def get_donors(self, limit: int = 50, **filters: Any) -> Any:
        return await self.request("getDonors", {"limit": limit, **filters}, use_post=True)

    async def get_donor_details(self, donor_id: str) -> Any:
        return await self.request("getDonorDetails", {"donorId": donor_id}, use_post=True)

    async def chat_with_donor(self, donor_id: str, message: str) -> Any:
        return await self.request(
            "chatWithDonor", {"donorId": donor_id, "message": message}, use_post=True
        )

    async def bulk_create_donors(
        self,
        donors: list[dict[str, Any]],
        path: str | None = None,
    ) -> Any:
        """POST *donors* to the bulk-create REST resource.

        This is the one call outside the multiplexed endpoint; it shares
        the transport and error semantics of ``call``.
        """
        response = await self._client.post(
            path or settings.DONORS_BULK_PATH,
            json={"donors": donors, "organizationId": self.org_id},
            headers={ORG_HEADER: self.org_id},
        )
        if response.is_error:
            raise TransportError(
                response.status_code, response.reason_phrase, response.text, method="bulkCreate"
            )
        return response.json()

    # -- lifecycle -------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AIDataClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
