import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from core.errors import CredentialError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    token: str
    expires_at: float

    def is_fresh(self, now: float, margin: float) -> bool:
        return now < self.expires_at - margin


class CredentialCache:
    """
    Holds the single bearer credential for the commerce admin API.

    Concurrent callers that find the credential stale share one refresh:
    the first caller starts it, everyone else awaits the same future.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient | None = None,
        margin_sec: float = 60.0,
        attempts: int = 3,
        backoff_sec: float = 0.5,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.margin_sec = margin_sec
        self.attempts = max(1, attempts)
        self.backoff_sec = backoff_sec
        self._clock = clock
        self._sleep = sleep
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=10.0)
        self._credential: Optional[Credential] = None
        self._refresh: Optional[asyncio.Future] = None

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    async def get_credential(self) -> Credential:
        credential = self._credential
        if credential is not None and credential.is_fresh(self._clock(), self.margin_sec):
            return credential

        if self._refresh is None:
            self._refresh = asyncio.ensure_future(self._run_refresh())
        # Shielded so a cancelled waiter does not cancel the refresh for the others
        return await asyncio.shield(self._refresh)

    async def get_token(self) -> str:
        credential = await self.get_credential()
        return credential.token

    async def _run_refresh(self) -> Credential:
        try:
            credential = await self._fetch_with_retry()
            self._credential = credential
            return credential
        finally:
            self._refresh = None

    async def _fetch_with_retry(self) -> Credential:
        for attempt in range(1, self.attempts + 1):
            try:
                return await self._fetch()
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                message = str(e) or type(e).__name__
                logger.error(f"Token refresh attempt {attempt}/{self.attempts} failed: {message}")
                if attempt >= self.attempts:
                    raise CredentialError(
                        f"Failed to refresh commerce token after {self.attempts} attempts: {message}"
                    ) from e
                await self._sleep(self.backoff_sec * (2 ** (attempt - 1)))
        raise CredentialError("Token refresh did not run")

    async def _fetch(self) -> Credential:
        response = await self._http.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        if response.status_code >= 300:
            raise httpx.HTTPStatusError(
                f"Token request failed ({response.status_code}): {response.text}",
                request=response.request,
                response=response,
            )
        payload = response.json()
        token = payload["access_token"]
        expires_in = float(payload["expires_in"])
        if not token:
            raise ValueError("Token response contained an empty access_token")

        logger.info(f"Commerce token refreshed. Scopes: {payload.get('scope')}. Expires in {expires_in:.0f}s")
        return Credential(token=token, expires_at=self._clock() + expires_in)

    async def aclose(self):
        if self._owns_client:
            await self._http.aclose()
