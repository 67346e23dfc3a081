import base64
import hashlib
import io
import os
import stat


def get_max_concurrency():
    """
    Attempt to determine the number of logical cores
    available to the process and return
    """
    try:
        num = len(os.sched_getaffinity(0))
        num = num * 2  # Let's assume two threads per core
    except AttributeError:
        # This returns the # of logical processors
        # (or threads) available in the machine
        # but not necessarily the # available to the process
        num = (os.cpu_count() or 4) // 4
    return max(int(num), 1)


def stream_size(stream) -> int:
    """Number of bytes left between the current position and the end of ``stream``"""
    position = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(position)
    return end - position


def content_md5(data) -> str:
    """Base64 of the binary MD5 of ``data``, as used by the Content-MD5 header"""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


def encode_md5(digest: bytes) -> str:
    return base64.b64encode(digest).decode("ascii")


def make_stat_result(size=0, mtime=0, ctime=0):
    """
    ``os.stat_result`` for a blob

    Blobs are reported as regular files with 0777 access.
    """
    mode = stat.S_IFREG | 0o777
    return os.stat_result((mode, 0, 0, 0, 0, 0, int(size), mtime, mtime, ctime))
