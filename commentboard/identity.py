"""
Client for the random identity service (randomuser.me by default).

Each call to ``fetch_one`` issues a single GET and extracts a display
name and a password from the first result.  ``fetch_many`` runs several
of those concurrently and only returns once every call has succeeded.
"""
import asyncio
import logging
from dataclasses import dataclass

import httpx

from commentboard.errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    name: str
    password: str


class RandomUserClient:
    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url
        self._client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_one(self) -> Identity:
        try:
            resp = await self._client.get(self.base_url)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Identity service call failed: %s", exc)
            raise UpstreamFailure("Identity service unavailable") from exc
        return self._parse(payload)

    async def fetch_many(self, count: int) -> list[Identity]:
        """
        Fetch *count* identities concurrently.

        The whole set is awaited before returning; the first failure is
        propagated as ``UpstreamFailure`` and no partial list is returned.
        """
        if count <= 0:
            return []
        return list(await asyncio.gather(*(self.fetch_one() for _ in range(count))))

    @staticmethod
    def _parse(payload) -> Identity:
        try:
            person = payload["results"][0]
            name = f"{person['name']['first']} {person['name']['last']}"
            password = person["login"]["password"]
        except (KeyError, IndexError, TypeError) as exc:
            logger.warning("Unexpected identity payload: %r", payload)
            raise UpstreamFailure("Identity service returned an unexpected payload") from exc
        if not isinstance(password, str):
            raise UpstreamFailure("Identity service returned an unexpected payload")
        return Identity(name=name, password=password)
