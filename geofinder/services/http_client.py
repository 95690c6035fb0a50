import asyncio
import functools
import logging
from typing import Any, Dict, Optional

import requests


class HttpRequestError(Exception):
    """Non-2xx response or transport failure, with the decoded JSON body when there is one."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body: Dict[str, Any] = body or {}


class HttpClient:
    """Blocking requests session driven from the event loop's default executor."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        app_check_token: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.app_check_token = app_check_token

    def set_app_check_token(self, token: Optional[str]) -> None:
        self.app_check_token = token

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._run("GET", path, params=params)

    async def post_json(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return await self._run("POST", path, json=payload or {})

    async def _run(self, method: str, path: str, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self._request, method, path, **kwargs)
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        headers = {}
        if self.app_check_token:
            headers["X-Firebase-AppCheck"] = self.app_check_token
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise HttpRequestError(f"{method} {url} failed: {e}") from e

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            logging.debug(f"{method} {url} -> {response.status_code}: {body}")
            raise HttpRequestError(
                body.get("message") or f"{method} {url} returned {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        try:
            return response.json()
        except ValueError as e:
            raise HttpRequestError(f"{method} {url} returned invalid JSON") from e
