# app/notifications/http.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger("catering.notify.http")

_SECRET_HEADERS = ("Authorization", "X-Api-Key")


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[dict[str, Any]]
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpClient:
    def __init__(
        self,
        timeout_s: float = 10.0,
        follow_redirects: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=follow_redirects, transport=transport)

    def post(
        self,
        url: str,
        *,
        headers: dict[str, str],
        json_body: dict[str, Any] | None = None,
        debug: bool = False,
    ) -> HttpResponse:
        r = self._client.post(url, headers=headers, json=json_body)
        if debug:
            self._debug_dump("POST", url, headers, r)
        return self._wrap(r)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _wrap(r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)

    @staticmethod
    def _debug_dump(method: str, url: str, headers: dict[str, str], r: httpx.Response) -> None:
        safe_headers = dict(headers or {})
        for name in _SECRET_HEADERS:
            if name in safe_headers:
                safe_headers[name] = "REDACTED"
        logger.debug(
            "%s %s headers=%s -> status=%s text=%s",
            method, url, safe_headers, r.status_code, r.text[:300],
        )


def is_retryable_http(code: int) -> bool:
    return code in (408, 425, 429, 500, 502, 503, 504)
