"""HTTP client that captures the exchanges made by a test."""

import json
import time
from collections.abc import Mapping

import aiohttp

from boostsec.api_test_runner.models.config import HttpConfig
from boostsec.api_test_runner.models.exchange import (
    CapturedRequest,
    CapturedResponse,
    Exchange,
)


def merge_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Flatten a multi-valued header mapping, joining repeats with ', '."""
    merged: dict[str, str] = {}
    for key, value in headers.items():
        merged[key] = f"{merged[key]}, {value}" if key in merged else value
    return merged


class HttpClient:
    """Performs requests and remembers what was sent and received.

    One instance belongs to one test context; nothing is shared between
    instances.
    """

    def __init__(self, config: HttpConfig | None = None) -> None:
        """Initialize client with configuration."""
        self.config = config or HttpConfig()
        self.history: list[Exchange] = []

    async def request(
        self,
        method: str,
        url: str,
        *,
        json_body: object = None,
        data: object = None,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CapturedResponse:
        """Send a request and record the exchange.

        Any status code is returned; only transport failures raise.
        """
        method = method.upper()
        full_url = self._resolve(url)
        merged_headers = {**self.config.headers, **(headers or {})}
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.config.timeout)

        start = time.monotonic()
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.request(
                method,
                full_url,
                json=json_body,
                data=data,
                params=params,
                headers=merged_headers,
            ) as response:
                text = await response.text()
                status = response.status
                response_headers = merge_headers(response.headers)
                set_cookies = response.headers.getall("Set-Cookie", [])
                sent_url = str(response.url)
        elapsed = time.monotonic() - start

        captured = CapturedResponse(
            status=status,
            headers=response_headers,
            set_cookies=set_cookies,
            body=self._decode(text, response_headers),
            response_time=elapsed,
        )
        self.history.append(
            Exchange(
                request=CapturedRequest(
                    method=method,
                    url=sent_url,
                    headers=merged_headers,
                    body=json_body if json_body is not None else data,
                ),
                response=captured,
            )
        )
        return captured

    async def get(self, url: str, **kwargs: object) -> CapturedResponse:
        """Send a GET request."""
        return await self.request("GET", url, **kwargs)  # type: ignore[arg-type]

    async def post(
        self, url: str, json: object = None, **kwargs: object
    ) -> CapturedResponse:
        """Send a POST request with an optional JSON payload."""
        return await self.request("POST", url, json_body=json, **kwargs)  # type: ignore[arg-type]

    async def put(
        self, url: str, json: object = None, **kwargs: object
    ) -> CapturedResponse:
        """Send a PUT request with an optional JSON payload."""
        return await self.request("PUT", url, json_body=json, **kwargs)  # type: ignore[arg-type]

    async def patch(
        self, url: str, json: object = None, **kwargs: object
    ) -> CapturedResponse:
        """Send a PATCH request with an optional JSON payload."""
        return await self.request("PATCH", url, json_body=json, **kwargs)  # type: ignore[arg-type]

    async def delete(self, url: str, **kwargs: object) -> CapturedResponse:
        """Send a DELETE request."""
        return await self.request("DELETE", url, **kwargs)  # type: ignore[arg-type]

    async def head(self, url: str, **kwargs: object) -> CapturedResponse:
        """Send a HEAD request."""
        return await self.request("HEAD", url, **kwargs)  # type: ignore[arg-type]

    async def options(self, url: str, **kwargs: object) -> CapturedResponse:
        """Send an OPTIONS request."""
        return await self.request("OPTIONS", url, **kwargs)  # type: ignore[arg-type]

    def get_last_exchange(self) -> Exchange | None:
        """Most recent exchange, or None if no request was made."""
        return self.history[-1] if self.history else None

    def get_last_request(self) -> CapturedRequest | None:
        """Most recent request, or None if no request was made."""
        exchange = self.get_last_exchange()
        return exchange.request if exchange else None

    def get_last_response(self) -> CapturedResponse | None:
        """Most recent response, or None if no request was made."""
        exchange = self.get_last_exchange()
        return exchange.response if exchange else None

    def clear_history(self) -> None:
        """Forget recorded exchanges."""
        self.history = []

    def _resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")) or not self.config.base_url:
            return url
        return f"{self.config.base_url.rstrip('/')}/{url.lstrip('/')}"

    @staticmethod
    def _decode(text: str, headers: Mapping[str, str]) -> object:
        if not text:
            return None
        content_type = next(
            (v for k, v in headers.items() if k.lower() == "content-type"), ""
        )
        if "json" in content_type:
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                return text
        return text
