"""Legajo resource service.

Thin path-building layer over the authenticated HttpClient. Paths are
prefixed with the API version learned at authentication time.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from digiventures.auth.manager import AuthManager
from digiventures.models.legajo import (
    ById,
    Legajo,
    LegajoCreateData,
    LegajoUpdateData,
    Reference,
    Resolved,
    Strategy,
)
from digiventures.transport.client import HttpClient

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "1.0"


class LegajoService:
    """Create, read and update legajos."""

    def __init__(self, client: HttpClient, auth: AuthManager):
        self.client = client
        self.auth = auth

    async def _version_path(self) -> str:
        # The version is only learned once a token has been fetched
        await self.auth.get_token()
        version = self.auth.get_api_version() or DEFAULT_API_VERSION
        return f"/{version}"

    async def _legajo_path(self, legajo_id: str) -> str:
        version_path = await self._version_path()
        return f"{version_path}/legajo/{quote(legajo_id, safe='')}"

    async def create(
        self,
        data: LegajoCreateData | dict[str, Any],
        strategy: Strategy | str | None = None,
    ) -> Legajo:
        """Create a new legajo.

        Args:
            data: Legajo fields
            strategy: How the API should treat an existing match
                (IGNORE, COMPLETE or OVERRIDE)

        Returns:
            The created legajo
        """
        headers = {}
        if strategy:
            headers["strategy"] = Strategy(strategy).value

        version_path = await self._version_path()
        response = await self.client.post(
            f"{version_path}/legajo",
            json=_dump(data),
            headers=headers,
        )
        legajo = Legajo.model_validate(response.json())
        logger.debug(f"Created legajo {legajo.id}")
        return legajo

    async def get(self, legajo_id: str) -> Legajo:
        path = await self._legajo_path(legajo_id)
        response = await self.client.get(path)
        return Legajo.model_validate(response.json())

    async def update(
        self, legajo_id: str, data: LegajoUpdateData | dict[str, Any]
    ) -> Legajo:
        path = await self._legajo_path(legajo_id)
        response = await self.client.put(path, json=_dump(data))
        return Legajo.model_validate(response.json())

    async def resolve(self, reference: Reference) -> Legajo:
        """Return the referenced legajo, fetching it when only an id is known."""
        if isinstance(reference, ById):
            return await self.get(reference.id)
        if isinstance(reference, Resolved):
            return reference.legajo
        raise TypeError(f"Unsupported legajo reference: {reference!r}")

    async def get_link_recover(self, reference: Reference) -> str | None:
        """Recovery link of the referenced legajo, if it has one."""
        legajo = await self.resolve(reference)
        return legajo.link_recover or None

    async def get_link_applicant(self, reference: Reference) -> str | None:
        """Applicant link of the referenced legajo, if it has one."""
        legajo = await self.resolve(reference)
        return legajo.link_applicant or None


def _dump(data: Any) -> Any:
    if isinstance(data, (LegajoCreateData, LegajoUpdateData)):
        return data.model_dump(by_alias=True, exclude_none=True, mode="json")
    return data
