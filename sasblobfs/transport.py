# -*- coding: utf-8 -*-
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Mapping

import aiohttp

from ._version import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"sasblobfs/{__version__}"


@dataclass
class TransportResponse:
    status: int
    reason: str = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class StreamingResponse:
    status: int
    reason: str = None
    headers: Mapping[str, str] = field(default_factory=dict)
    content: aiohttp.StreamReader = None

    async def iter_chunks(self, chunk_size: int):
        async for chunk in self.content.iter_chunked(chunk_size):
            yield chunk


class AiohttpTransport:
    """
    Sends requests with a lazily created ``aiohttp.ClientSession``

    Retries, timeouts and connection pooling are whatever the session is
    configured to do through ``client_kwargs``.

    Parameters
    ----------
    client_kwargs: dict
        Passed to ``aiohttp.ClientSession``
    """

    def __init__(self, client_kwargs: dict = None):
        self.client_kwargs = client_kwargs or {}
        self._session = None

    async def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(**self.client_kwargs)
        return self._session

    def _headers(self, headers):
        out = {"User-Agent": USER_AGENT}
        out.update(headers or {})
        return out

    async def request(self, method: str, url: str, headers=None, data=None):
        session = await self.get_session()
        async with session.request(
            method, url, headers=self._headers(headers), data=data
        ) as resp:
            body = await resp.read()
            return TransportResponse(
                status=resp.status, reason=resp.reason, headers=resp.headers, body=body
            )

    @asynccontextmanager
    async def stream(self, method: str, url: str, headers=None):
        session = await self.get_session()
        async with session.request(
            method, url, headers=self._headers(headers)
        ) as resp:
            yield StreamingResponse(
                status=resp.status,
                reason=resp.reason,
                headers=resp.headers,
                content=resp.content,
            )

    async def close(self):
        if self._session is not None and not self._session.closed:
            logger.debug("Closing aiohttp session")
            await self._session.close()
