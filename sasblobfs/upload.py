# -*- coding: utf-8 -*-
import asyncio
import logging
import math
from dataclasses import dataclass

from .blocks import build_block_list_body, next_block_id
from .errors import BlockCountExceededError
from .urls import build_block_url, build_blocklist_url, build_properties_url
from .utils import content_md5, encode_md5, get_max_concurrency, stream_size

logger = logging.getLogger(__name__)

# Threshold before blob uploads use block upload
MULTIPART_THRESHOLD = 32 * 2 ** 20
MULTIPART_BLOCK_SIZE = 32 * 2 ** 20
# Set by the service
MAX_NUMBER_BLOCKS = 50000
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class PutResult:
    key: str
    size: int
    content_md5: str
    content_type: str
    block_count: int = 0

    @property
    def multipart(self) -> bool:
        return self.block_count > 0


class BlockBlobUploader:
    """
    Uploads content as a block blob

    Content up to ``threshold`` bytes is sent in a single request. Larger
    content is split into blocks of ``block_size`` bytes which are staged
    concurrently, committed as a block list in read order, and finally given
    the whole-content MD5 and content type through a properties update.

    Parameters
    ----------
    client: BlobClient
        Client issuing the requests
    threshold: int
        Largest size uploaded in a single request
    block_size: int
        Number of bytes per block
    max_blocks: int
        Largest number of blocks a blob may be made of
    max_concurrency: int
        Largest number of blocks read into memory and in flight at once.
        Defaults to ``get_max_concurrency()``
    """

    def __init__(
        self,
        client,
        threshold: int = MULTIPART_THRESHOLD,
        block_size: int = MULTIPART_BLOCK_SIZE,
        max_blocks: int = MAX_NUMBER_BLOCKS,
        max_concurrency: int = None,
    ):
        if block_size <= 0:
            raise ValueError(f"block_size must be positive, got {block_size}")
        self.client = client
        self.threshold = threshold
        self.block_size = block_size
        self.max_blocks = max_blocks
        self.max_concurrency = max_concurrency or get_max_concurrency()

    def should_upload_multipart(self, size: int) -> bool:
        return size > self.threshold

    async def put(self, key: str, stream, md5: bytes, content_type: str = None):
        """
        Upload ``stream`` to ``key``

        Parameters
        ----------
        key: str
            Blob key
        stream: file-like
            Seekable binary stream, read from its current position to the end
        md5: bytes
            Binary MD5 of the content. The service rejects the upload when it
            does not match what it received
        content_type: str
            Content type stored with the blob

        Returns
        -------
        PutResult, once the whole upload completed
        """
        content_type = content_type or DEFAULT_CONTENT_TYPE
        size = stream_size(stream)
        if self.should_upload_multipart(size):
            return await self._put_multipart(key, stream, size, md5, content_type)
        return await self._put_single(key, stream, size, md5, content_type)

    async def _put_single(self, key, stream, size, md5, content_type):
        logger.debug(f"Single upload of {size} bytes to {key}")
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "x-ms-blob-content-type": content_type,
            "Content-MD5": encode_md5(md5),
        }
        await self.client.send(
            "PUT", self.client.blob_url(key), headers=headers, data=stream.read()
        )
        return PutResult(key, size, encode_md5(md5), content_type)

    async def _put_block(self, blob_url, block_id, data, semaphore):
        try:
            await self.client.send(
                "PUT",
                build_block_url(blob_url, block_id),
                headers={"Content-MD5": content_md5(data)},
                data=data,
            )
        finally:
            semaphore.release()

    async def _put_multipart(self, key, stream, size, md5, content_type):
        expected_blocks = math.ceil(size / self.block_size)
        if expected_blocks > self.max_blocks:
            raise BlockCountExceededError(
                f"{size} bytes need {expected_blocks} blocks of {self.block_size} bytes, "
                f"more than the maximum of {self.max_blocks}. Is the block size too small?"
            )
        logger.debug(f"Block upload of {size} bytes to {key} in {expected_blocks} blocks")

        blob_url = self.client.blob_url(key)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        block_ids = []
        tasks = []
        while True:
            await semaphore.acquire()
            if any(t.done() and t.exception() is not None for t in tasks):
                semaphore.release()
                break
            data = stream.read(self.block_size)
            if not data:
                semaphore.release()
                break
            if len(block_ids) >= self.max_blocks:
                semaphore.release()
                raise BlockCountExceededError(
                    f"Content of {key} needs more than {self.max_blocks} blocks"
                )
            block_id = next_block_id(len(block_ids))
            block_ids.append(block_id)
            tasks.append(
                asyncio.ensure_future(
                    self._put_block(blob_url, block_id, data, semaphore)
                )
            )

        # A failed block aborts the upload before anything is committed. Blocks
        # already in flight are awaited so that none of their errors go unretrieved.
        results = await asyncio.gather(*tasks, return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.debug(f"{len(errors)} of {len(tasks)} blocks failed for {key}")
            raise errors[0]

        body = build_block_list_body(block_ids)
        await self.client.send(
            "PUT",
            build_blocklist_url(blob_url),
            headers={"Content-Type": "application/xml", "Content-MD5": content_md5(body)},
            data=body,
        )
        logger.debug(f"Committed {len(block_ids)} blocks to {key}")

        # Not atomic with the commit: a failure here leaves the committed
        # content without its MD5 and content type
        await self.client.send(
            "PUT",
            build_properties_url(blob_url),
            headers={
                "x-ms-blob-content-md5": encode_md5(md5),
                "x-ms-blob-content-type": content_type,
            },
        )
        return PutResult(key, size, encode_md5(md5), content_type, len(block_ids))
