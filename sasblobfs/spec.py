# -*- coding: utf-8 -*-
import asyncio
import errno
import hashlib
import io
import logging
import os
import tempfile
import warnings
import weakref

from azure.core.exceptions import AzureError
from fsspec.asyn import AsyncFileSystem, get_loop, sync, sync_wrapper
from fsspec.caching import caches
from fsspec.exceptions import FSTimeoutError
from fsspec.spec import AbstractBufferedFile
from fsspec.utils import stringify_path

from .client import BlobClient
from .errors import BlobStatus, BlobWarning, status_of
from .transport import AiohttpTransport
from .upload import DEFAULT_CONTENT_TYPE, MULTIPART_BLOCK_SIZE, MULTIPART_THRESHOLD
from .utils import make_stat_result

logger = logging.getLogger(__name__)

WRITE_MODES = {"wb", "ab", "xb"}
SUPPORTED_MODES = {"rb"} | WRITE_MODES


def translate_error(error: AzureError) -> OSError:
    """
    Builtin ``OSError`` matching a failed request

    Messages of errors raised by ``BlobClient`` are already redacted.
    """
    status = status_of(error)
    if status is BlobStatus.NOT_FOUND:
        return FileNotFoundError(errno.ENOENT, str(error))
    if status is BlobStatus.CONFLICT:
        return FileExistsError(errno.EEXIST, str(error))
    return OSError(errno.EIO, str(error))


class BlobFileSystem(AsyncFileSystem):
    """
    Access block blobs through SAS-signed URLs as if they were files

    Paths take the form ``blob://<container>/<key>``. Only single keys are
    supported, there is no directory listing.

    Parameters
    ----------
    account_name: str
        The storage account name, used to build the endpoint
        ``https://<account_name>.blob.core.windows.net``. Read from
        ``AZURE_STORAGE_ACCOUNT_NAME`` when not given.
    sas_token: str
        Shared access signature appended to every request. Read from
        ``AZURE_STORAGE_SAS_TOKEN`` when not given.
    account_url: str
        Endpoint overriding the one built from ``account_name``, e.g. an
        emulator. Read from ``AZURE_STORAGE_ACCOUNT_URL`` when not given.
    client_factory: callable
        ``client_factory(container) -> BlobClient``. When given, the
        connection details above are not used.
    transport: AiohttpTransport
        Transport shared by the clients built by the filesystem
    client_kwargs: dict
        Passed to ``aiohttp.ClientSession`` when the filesystem creates its
        own transport
    multipart_threshold: int
        Largest size uploaded in a single request. Defaults to 32 MiB
    block_size: int
        Number of bytes per block of larger uploads. Defaults to 32 MiB
    max_concurrency: int
        Largest number of blocks in flight during an upload
    content_type: str
        Content type of written blobs, unless given to ``open``
    default_cache_type: str
        Cache used by files opened for reading. Docs in fsspec

    Examples
    --------
    >>> fs = BlobFileSystem(account_name="XXXX", sas_token="sv=...&sig=...")
    >>> with fs.open("blob://container/path/to/file", "wb") as f:
    ...     f.write(b"hello")
    >>> fs.cat("blob://container/path/to/file")
    b'hello'
    """

    protocol = "blob"

    def __init__(
        self,
        account_name: str = None,
        sas_token: str = None,
        account_url: str = None,
        client_factory=None,
        transport=None,
        client_kwargs: dict = None,
        multipart_threshold: int = MULTIPART_THRESHOLD,
        block_size: int = MULTIPART_BLOCK_SIZE,
        max_concurrency: int = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
        default_cache_type: str = "bytes",
        loop=None,
        asynchronous: bool = False,
        **kwargs,
    ):
        super().__init__(asynchronous=asynchronous, loop=loop or get_loop(), **kwargs)

        self.account_name = account_name or os.getenv("AZURE_STORAGE_ACCOUNT_NAME")
        self.sas_token = sas_token or os.getenv("AZURE_STORAGE_SAS_TOKEN")
        self.account_url = account_url or os.getenv("AZURE_STORAGE_ACCOUNT_URL")
        self.content_type = content_type
        self.default_cache_type = default_cache_type
        self.uploader_options = {
            "threshold": multipart_threshold,
            "block_size": block_size,
            "max_concurrency": max_concurrency,
        }
        self._clients = {}

        if client_factory is not None:
            self.client_factory = client_factory
            self.transport = transport
        elif self.account_name or self.account_url:
            self.client_factory = self._make_client
            self.transport = transport
            if self.transport is None:
                self.transport = AiohttpTransport(client_kwargs)
                weakref.finalize(self, self.close_transport, self.loop, self.transport)
        else:
            raise ValueError(
                "Must provide either an account_name or account_url with a sas_token, "
                "or a client_factory"
            )

    @staticmethod
    def close_transport(loop, transport):
        """Close the aiohttp session of ``transport``, if the loop still runs"""
        if loop is not None and loop.is_running() and not loop.is_closed():
            try:
                sync(loop, transport.close, timeout=0.1)
            except FSTimeoutError:
                logger.debug("Timed out closing the transport")

    def _make_client(self, container: str) -> BlobClient:
        return BlobClient(
            self.account_name,
            container,
            self.sas_token,
            transport=self.transport,
            account_url=self.account_url,
            uploader_options=self.uploader_options,
        )

    def get_client(self, container: str) -> BlobClient:
        client = self._clients.get(container)
        if client is None:
            client = self._clients[container] = self.client_factory(container)
        return client

    @classmethod
    def _strip_protocol(cls, path):
        """
        Remove the protocol from the input path

        Examples
        --------
        >>> BlobFileSystem._strip_protocol("blob://container/path/to/file")
        'container/path/to/file'
        """
        if isinstance(path, list):
            return [cls._strip_protocol(p) for p in path]
        path = stringify_path(path)
        if "://" in path:
            path = path.split("://", 1)[1]
        return path.lstrip("/")

    def split_path(self, path):
        """
        Normalize a path string into container and key

        Examples
        --------
        >>> fs.split_path("blob://my_container/path/to/file")
        ('my_container', 'path/to/file')
        """
        container, _, key = self._strip_protocol(path).partition("/")
        if not container or not key:
            raise ValueError(
                f"Could not parse the filepath {path!r}. You must specify a path "
                "in the form of blob://container/key"
            )
        return container, key

    async def _info(self, path, **kwargs):
        container, key = self.split_path(path)
        try:
            properties = await self.get_client(container).get_properties(key)
        except AzureError as e:
            raise translate_error(e) from e
        return {
            **properties,
            "name": f"{container}/{key}",
            "type": "file",
        }

    async def _exists(self, path, **kwargs):
        try:
            await self._info(path)
        except FileNotFoundError:
            return False
        return True

    async def _isfile(self, path):
        try:
            return (await self._info(path))["type"] == "file"
        except (FileNotFoundError, ValueError):
            return False

    async def _isdir(self, path):
        return False

    async def _size(self, path):
        return (await self._info(path))["size"]

    async def _stat(self, path, **kwargs):
        """
        ``os.stat_result`` of the blob at ``path``

        Returns
        -------
        None when the blob does not exist. Other failures raise ``OSError``
        """
        try:
            info = await self._info(path)
        except FileNotFoundError:
            return None
        last_modified = info.get("last_modified")
        mtime = int(last_modified.timestamp()) if last_modified else 0
        return make_stat_result(info["size"], mtime, mtime)

    async def _cat_file(self, path, start=None, end=None, **kwargs):
        container, key = self.split_path(path)
        client = self.get_client(container)
        try:
            if start is not None or (end is not None and end < 0):
                # A range starting at or past the end is rejected by the service
                size = (await client.get_properties(key))["size"]
                start = start or 0
                if start < 0:
                    start = max(size + start, 0)
                if end is not None and end < 0:
                    end = size + end
                if start >= size:
                    return b""
            if end is not None and end <= (start or 0):
                return b""
            return await client.get(key, start, end)
        except AzureError as e:
            raise translate_error(e) from e

    async def _pipe_file(self, path, value, content_type=None, **kwargs):
        container, key = self.split_path(path)
        md5 = hashlib.md5(value).digest()
        try:
            return await self.get_client(container).put(
                key, io.BytesIO(value), md5, content_type or self.content_type
            )
        except AzureError as e:
            raise translate_error(e) from e

    async def _rm_file(self, path, **kwargs):
        """Delete the blob at ``path``"""
        container, key = self.split_path(path)
        try:
            await self.get_client(container).delete(key)
        except AzureError as e:
            raise translate_error(e) from e
        self.invalidate_cache(self._strip_protocol(path))

    _unlink = _rm_file

    async def _rm(self, path, recursive=False, **kwargs):
        if isinstance(path, str):
            path = [path]
        await asyncio.gather(*[self._rm_file(p, **kwargs) for p in path])

    info = sync_wrapper(_info)
    exists = sync_wrapper(_exists)
    isfile = sync_wrapper(_isfile)
    isdir = sync_wrapper(_isdir)
    size = sync_wrapper(_size)
    stat = sync_wrapper(_stat)
    cat_file = sync_wrapper(_cat_file)
    pipe_file = sync_wrapper(_pipe_file)
    rm_file = sync_wrapper(_rm_file)
    unlink = sync_wrapper(_unlink)
    rm = sync_wrapper(_rm)

    def _open(
        self,
        path: str,
        mode: str = "rb",
        block_size: int = None,
        autocommit: bool = True,
        cache_options: dict = None,
        cache_type: str = None,
        content_type: str = None,
        **kwargs,
    ):
        """Open a blob

        Parameters
        ----------
        path: str
            Path to the blob, ``blob://<container>/<key>``

        mode: str
            One of "r", "w", "a" or "x", optionally followed by "b" or "t"

        block_size: int
            Size of the ranged reads in read mode

        cache_type: str
            Caching policy in read mode. Defaults to ``default_cache_type``

        content_type: str
            Content type stored with the blob in write modes
        """
        logger.debug(f"_open: {path}")
        return BlobFile(
            fs=self,
            path=path,
            mode=mode,
            block_size=block_size,
            autocommit=autocommit,
            cache_options=cache_options,
            cache_type=cache_type or self.default_cache_type,
            content_type=content_type,
            **kwargs,
        )


class BlobFile(AbstractBufferedFile):
    """
    File-like operations on a block blob

    Reading fetches byte ranges on demand. Writing collects the content and
    its MD5 locally; the upload happens once, on ``close``.
    """

    DEFAULT_BLOCK_SIZE = 5 * 2 ** 20

    def __init__(
        self,
        fs: BlobFileSystem,
        path: str,
        mode: str = "rb",
        block_size="default",
        autocommit: bool = True,
        cache_type: str = "bytes",
        cache_options: dict = None,
        content_type: str = None,
        **kwargs,
    ):
        """
        Parameters
        ----------
        fs: BlobFileSystem
            An instance of the filesystem

        path: str
            The location of the blob, ``<container>/<key>``

        mode: str
            One of "rb", "wb", "ab" or "xb". "b" and "t" flags are ignored

        block_size: int, str
            Size of ranged reads. The string "default" will use the class default

        cache_type: str
            Caching policy in read mode. See the definitions in ``fsspec.caching``

        content_type: str
            Content type stored with the blob in write modes

        kwargs: dict
            Kept as ``self.kwargs``
        """
        self.fs = fs
        self.path = fs._strip_protocol(path)
        self.mode = mode.rstrip("bt") + "b"
        self.container_name, self.blob = fs.split_path(self.path)
        self.client = fs.get_client(self.container_name)
        if self.mode not in SUPPORTED_MODES:
            raise NotImplementedError(
                f"Mode not supported: {mode}. Use one 'r', 'w', 'a', or 'x'."
            )

        self.loop = fs.loop
        self.blocksize = (
            self.DEFAULT_BLOCK_SIZE if block_size in ["default", None] else block_size
        )
        self.loc = 0
        self.autocommit = autocommit
        self.end = None
        self.start = None
        self.kwargs = kwargs
        self.content_type = content_type or fs.content_type
        self.readable_remote = True
        self.put_result = None
        self._hash = None

        if self.mode == "rb":
            self._open_read(cache_type, cache_options or {})
        else:
            self._open_write()
        self.closed = False

    def _fail(self, error_cls, message):
        return error_cls(self.client.redact(message))

    def _open_read(self, cache_type, cache_options):
        try:
            self.details = self.fs.info(self.path)
        except FileNotFoundError:
            warnings.warn(
                self.client.redact(f"{self.path} does not exist on blob storage"),
                BlobWarning,
                stacklevel=4,
            )
            self.readable_remote = False
            self.details = {"name": self.path, "size": 0, "type": "file"}
        self.size = self.details["size"]
        self.cache = caches[cache_type](
            self.blocksize, self._fetch_range, self.size, **cache_options
        )

    def _open_write(self):
        if self.mode == "xb" and self.fs.exists(self.path):
            raise self._fail(
                FileExistsError, f"{self.path} already exists on blob storage"
            )
        # Spills to disk once the content outgrows one block
        self.buffer = tempfile.SpooledTemporaryFile(max_size=self.blocksize)
        self.offset = None
        self.forced = False
        self.location = None
        self._hash = hashlib.md5()
        if self.mode == "ab":
            sync(self.loop, self._async_load_existing)

    async def _async_load_existing(self):
        """Copy the current content of the blob to the buffer, if there is one"""
        try:
            async for chunk in self.client.stream(self.blob):
                self.buffer.write(chunk)
                self._hash.update(chunk)
        except AzureError as e:
            if status_of(e) is not BlobStatus.NOT_FOUND:
                raise translate_error(e) from e
            logger.debug(f"{self.path} does not exist, appending to a new blob")
            self.buffer.seek(0)
            self.buffer.truncate()
            self._hash = hashlib.md5()
        self.loc = self.buffer.tell()

    def readable(self):
        return self.mode == "rb" and not self.closed

    def writable(self):
        return self.mode in WRITE_MODES and not self.closed

    def read(self, length=-1):
        """
        Return data from cache, or fetch pieces as necessary

        A handle on a blob that did not exist when it was opened reads as empty.
        """
        if not self.readable_remote:
            return b""
        return super().read(length)

    def write(self, data):
        out = super().write(data)
        self._hash.update(data)
        return out

    def seek(self, loc, whence=0):
        """Set current file location

        Write modes only accept seeking to the current location.

        Parameters
        ----------
        loc: int
            byte location

        whence: {0, 1, 2}
            from start of file, current location or end of file, resp.
        """
        if self.readable():
            return super().seek(loc, whence)
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        target = int(loc) if whence == 0 else self.loc + int(loc)
        if whence not in (0, 1, 2) or target != self.loc:
            raise OSError(errno.ESPIPE, "Seek only available in read mode")
        return self.loc

    def eof(self):
        if self.mode == "rb":
            return not self.readable_remote or self.loc >= self.size
        return True

    def stat(self):
        """``os.stat_result`` of the open handle"""
        if self.mode == "rb":
            last_modified = self.details.get("last_modified")
            mtime = int(last_modified.timestamp()) if last_modified else 0
            return make_stat_result(self.size, mtime, mtime)
        return make_stat_result(self.loc)

    async def _async_fetch_range(self, start: int, end: int = None, **kwargs):
        """
        Download a chunk of data specified by start and end

        Parameters
        ----------
        start: int
            Start byte position to download blob from
        end: int
            End of the file chunk to download
        """
        if end is not None and end > self.size:
            end = self.size
        if end is not None and end <= start:
            return b""
        try:
            return await self.client.get(self.blob, start, end)
        except AzureError as e:
            raise translate_error(e) from e

    _fetch_range = sync_wrapper(_async_fetch_range)

    def _initiate_upload(self):
        """Nothing is sent before the file is closed"""

    def _upload_chunk(self, final: bool = False, **kwargs):
        """
        Upload the whole buffer once the file is closed

        Returning False before that keeps the content buffered.
        """
        if not final:
            return False
        self.buffer.seek(0)
        try:
            self.put_result = sync(
                self.loop,
                self.client.put,
                self.blob,
                self.buffer,
                self._hash.digest(),
                self.content_type,
            )
        except AzureError as e:
            raise translate_error(e) from e
        self.buffer.close()
        self.buffer = io.BytesIO()
        return True

    def close(self):
        """Close the file, uploading its content in write modes"""
        if self.closed:
            return
        try:
            if self.writable() and not self.forced:
                self.flush(force=True)
                self.fs.invalidate_cache(self.path)
        finally:
            self.closed = True
            self.cache = None
            if getattr(self, "buffer", None) is not None:
                self.buffer.close()
            self.buffer = None
            self._hash = None
