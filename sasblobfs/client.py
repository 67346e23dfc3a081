# -*- coding: utf-8 -*-
import logging
from email.utils import parsedate_to_datetime

import aiohttp
from azure.core.exceptions import ServiceRequestError

from .errors import BlobStatus, raise_for_status, redact
from .transport import AiohttpTransport
from .upload import BlockBlobUploader
from .urls import account_url_for, build_blob_url

logger = logging.getLogger(__name__)

SUCCESS = range(200, 300)


class BlobClient:
    """
    Requests against the blobs of one container, signed with a SAS token

    Parameters
    ----------
    account_name: str
        The storage account name, used to build the endpoint when
        ``account_url`` is not given
    container: str
        Container holding the blobs
    sas_token: str
        Shared access signature appended to every request URL. It never
        appears in raised errors
    transport: AiohttpTransport
        Sends the requests. A new one is created when not given
    account_url: str
        Endpoint of the storage account, e.g. an emulator
    uploader_options: dict
        Passed to ``BlockBlobUploader``

    Examples
    --------
    >>> client = BlobClient("account", "container", "sv=...&sig=...")  # doctest: +SKIP
    >>> await client.get_properties("path/to/blob")  # doctest: +SKIP
    """

    def __init__(
        self,
        account_name: str,
        container: str,
        sas_token: str,
        transport=None,
        account_url: str = None,
        uploader_options: dict = None,
    ):
        if not (account_url or account_name):
            raise ValueError("Must provide either an account_name or an account_url")
        self.account_name = account_name
        self.container = container
        self.sas_token = (sas_token or "").lstrip("?")
        self.account_url = account_url or account_url_for(account_name)
        self.transport = transport or AiohttpTransport()
        self.uploader = BlockBlobUploader(self, **(uploader_options or {}))

    def __repr__(self):
        return f"<BlobClient {self.account_url}/{self.container}>"

    def blob_url(self, key: str) -> str:
        return build_blob_url(self.account_url, self.container, key, self.sas_token)

    def redact(self, text) -> str:
        return redact(text, self.sas_token)

    async def send(self, method: str, url: str, headers=None, data=None, expected=SUCCESS):
        """
        Send one request and fail on an unexpected status

        Raises
        ------
        ResourceNotFoundError, ResourceExistsError, HttpResponseError
            The service answered with an unexpected status
        ServiceRequestError
            The request could not be sent
        """
        logger.debug(f"{method} {self.redact(url)}")
        try:
            response = await self.transport.request(
                method, url, headers=headers, data=data
            )
        except aiohttp.ClientError as e:
            error = ServiceRequestError(message=self.redact(f"{method} failed: {e}"))
            error.status = BlobStatus.FAILED
            raise error from None
        raise_for_status(
            response.status, expected, method, url, self.sas_token, response.reason
        )
        return response

    async def get(self, key: str, start: int = None, end: int = None) -> bytes:
        """
        Contents of a blob

        Parameters
        ----------
        key: str
            Blob key
        start, end: int
            Byte range to download, ``end`` excluded. The whole blob when
            neither is given
        """
        headers = {}
        if start is not None or end is not None:
            start = start or 0
            last = "" if end is None else end - 1
            headers["Range"] = f"bytes={start}-{last}"
        response = await self.send("GET", self.blob_url(key), headers=headers)
        return response.body

    async def stream(self, key: str, chunk_size: int = 2 ** 20):
        """Iterate over the contents of a blob without holding it in memory"""
        url = self.blob_url(key)
        logger.debug(f"GET {self.redact(url)} (streaming)")
        try:
            async with self.transport.stream("GET", url) as response:
                raise_for_status(
                    response.status, SUCCESS, "GET", url, self.sas_token, response.reason
                )
                async for chunk in response.iter_chunks(chunk_size):
                    yield chunk
        except aiohttp.ClientError as e:
            error = ServiceRequestError(message=self.redact(f"GET failed: {e}"))
            error.status = BlobStatus.FAILED
            raise error from None

    async def get_properties(self, key: str) -> dict:
        """
        Properties of a blob, from the headers of a HEAD request

        Returns
        -------
        dict with keys name, size, last_modified, content_type, content_md5, etag
        """
        response = await self.send("HEAD", self.blob_url(key))
        headers = response.headers
        last_modified = headers.get("Last-Modified")
        return {
            "name": key,
            "size": int(headers.get("Content-Length", 0)),
            "last_modified": parsedate_to_datetime(last_modified)
            if last_modified
            else None,
            "content_type": headers.get("Content-Type"),
            "content_md5": headers.get("Content-MD5"),
            "etag": headers.get("ETag"),
        }

    async def delete(self, key: str):
        await self.send("DELETE", self.blob_url(key))

    async def put(self, key: str, stream, md5: bytes, content_type: str = None):
        """Upload ``stream`` to ``key``. See ``BlockBlobUploader.put``"""
        return await self.uploader.put(key, stream, md5, content_type)
