"""Upstream completion client for OpenAI-compatible ``/chat/completions``.

Exactly one streaming request is made per turn; there are no retries. The
caller receives an :class:`UpstreamStream` whose raw byte chunks feed the
SSE envelope reader.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import requests
from requests.adapters import HTTPAdapter

from ..config import ConciergeSettings
from ..errors import UpstreamError, UpstreamStatusError

LOG = logging.getLogger("concierge.llm")

_MAX_ERROR_BODY = 2000


def _build_session() -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


@dataclass
class CompletionPayload:
    model: str
    messages: List[Dict[str, str]] = field(default_factory=list)
    temperature: float = 0.7
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    max_tokens: int = 800
    stream: bool = True
    n: Optional[int] = 1

    def to_json(self) -> Dict[str, Any]:
        body = asdict(self)
        if body["n"] is None:
            body.pop("n")
        return body


class UpstreamStream:
    """An open streaming HTTP response from the completion provider."""

    def __init__(self, response: requests.Response) -> None:
        self._response = response

    def chunks(self) -> Iterator[bytes]:
        try:
            for chunk in self._response.iter_content(chunk_size=None):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as exc:
            raise UpstreamError(f"Upstream stream interrupted: {exc}") from exc
        finally:
            self.close()

    def close(self) -> None:
        self._response.close()


class CompletionClient:
    def __init__(self, settings: ConciergeSettings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self._session = session or _build_session()

    def open_stream(self, payload: CompletionPayload) -> UpstreamStream:
        """POST the payload and return the open stream.

        Raises ``ConfigurationError`` without an API key, ``UpstreamStatusError``
        on a non-2xx answer and ``UpstreamError`` on transport failures.
        """
        api_key = self.settings.require_api_key()
        url = self.settings.completions_url
        LOG.debug(
            "completion_stream_open",
            extra={"model": payload.model, "url": url, "messages": len(payload.messages)},
        )
        try:
            resp = self._session.post(
                url,
                json=payload.to_json(),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {api_key}",
                },
                timeout=self.settings.timeout,
                stream=True,
            )
        except requests.exceptions.RequestException as exc:
            LOG.warning("completion_request_failed", extra={"url": url, "err": str(exc)})
            raise UpstreamError(f"Completion request failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            body = (resp.text or "")[:_MAX_ERROR_BODY]
            resp.close()
            LOG.warning(
                "completion_non_success_status",
                extra={"status": resp.status_code, "reason": resp.reason, "body": body},
            )
            raise UpstreamStatusError(resp.status_code, resp.reason or "", body)
        return UpstreamStream(resp)
