import fsspec

from ._version import __version__, version_tuple  # noqa: F401
from .client import BlobClient
from .errors import BlobStatus, BlobWarning, BlockCountExceededError
from .spec import BlobFile, BlobFileSystem
from .upload import BlockBlobUploader, PutResult

__all__ = [
    "BlobClient",
    "BlobFile",
    "BlobFileSystem",
    "BlobStatus",
    "BlobWarning",
    "BlockBlobUploader",
    "BlockCountExceededError",
    "PutResult",
]

fsspec.register_implementation("blob", BlobFileSystem, clobber=True)

del fsspec
