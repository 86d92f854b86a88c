"""
Doof backend API client with rate limiting using aiolimiter.
"""
import asyncio
from typing import Any, Dict, Optional

from aiohttp import ClientError, ClientResponse, ClientSession, ClientTimeout
from aiolimiter import AsyncLimiter
from loguru import logger

from bulkadd.config import ClientConfig
from bulkadd.errors import ConfigurationError, PermanentAPIError, TransientAPIError


class DoofApiClient:
    """
    Async client for the Doof backend (places proxy, neighborhoods, admin endpoints).
    All behavior comes from the ClientConfig passed in; there is no shared instance.
    """

    def __init__(self, config: ClientConfig):
        self.config = config
        self.base_url = config.base_url.rstrip("/") if config.base_url else ""
        self.token = config.token
        self.rate_limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> "DoofApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: if the base URL or bearer token is missing.
        """
        if not self.base_url:
            raise ConfigurationError("DOOF_API_URL must be set in environment or config")
        if not self.token:
            raise ConfigurationError("DOOF_API_TOKEN must be set (or log in) before running a batch")

    async def _get_session(self) -> ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=self.config.timeout))
        return self._session

    def _headers(self, places: bool = False) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if places and self.config.dev_mode:
            headers["X-Bypass-Auth"] = "true"
            headers["X-Places-Api-Request"] = "true"
        return headers

    @staticmethod
    async def _read_body(resp: ClientResponse) -> Any:
        try:
            return await resp.json(content_type=None)
        except ValueError:
            return None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        places: bool = False,
        allow_404: bool = False,
    ) -> Any:
        """
        Send one request and return the parsed JSON body.

        Raises:
            TransientAPIError: timeouts, connection failures, 5xx and 429.
            PermanentAPIError: other 4xx responses, or any call in offline mode.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        if self.config.offline_mode:
            raise PermanentAPIError(f"Offline mode: refusing {method} {url}")

        async with self.rate_limiter:
            session = await self._get_session()
            try:
                async with session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=self._headers(places=places),
                ) as resp:
                    body = await self._read_body(resp)
                    if resp.status == 404 and allow_404:
                        return None
                    if resp.status >= 500 or resp.status == 429:
                        raise TransientAPIError(f"{method} {url} returned {resp.status}", status=resp.status)
                    if resp.status >= 400:
                        message = (body.get("message") or body.get("error")) if isinstance(body, dict) else None
                        raise PermanentAPIError(
                            f"{method} {url} returned {resp.status}: {message or 'request rejected'}",
                            status=resp.status,
                        )
                    return body
            except asyncio.TimeoutError as e:
                logger.debug(f"⏱️ TIMEOUT {method} {url}")
                raise TransientAPIError(f"{method} {url} timed out") from e
            except ClientError as e:
                logger.debug(f"⚠️ {method} {url} failed: {e}")
                raise TransientAPIError(f"{method} {url} failed: {e}") from e

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        return await self._request("GET", path, params=params, **kwargs)

    async def post_json(self, path: str, body: Dict[str, Any], **kwargs) -> Any:
        return await self._request("POST", path, json_body=body, **kwargs)

    async def login(self, email: str, password: str) -> str:
        """
        Exchange credentials for a bearer token and keep it for later calls.

        Returns:
            str: The token.
        """
        data = await self.post_json("/auth/login", {"email": email, "password": password})
        payload = data.get("data", data) if isinstance(data, dict) else {}
        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise PermanentAPIError("Login response did not include a token")
        self.token = token
        logger.info(f"🔑 Logged in as {email}")
        return token

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
