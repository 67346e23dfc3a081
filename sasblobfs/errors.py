# -*- coding: utf-8 -*-
import enum

from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)

REDACTED = "SAS_TOKEN_REDACTED"


class BlobStatus(enum.Enum):
    """Classification of a failed request"""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FAILED = "failed"

    @classmethod
    def from_status_code(cls, status_code):
        if status_code == 404:
            return cls.NOT_FOUND
        if status_code == 409:
            return cls.CONFLICT
        return cls.FAILED


_ERROR_MAP = {
    BlobStatus.NOT_FOUND: ResourceNotFoundError,
    BlobStatus.CONFLICT: ResourceExistsError,
}


class BlockCountExceededError(ValueError):
    """The content needs more blocks than a blob may hold"""


class BlobWarning(UserWarning):
    pass


def redact(text, sas_token: str) -> str:
    """Replace every occurrence of the SAS token in ``text``"""
    text = str(text)
    token = (sas_token or "").lstrip("?")
    if not token:
        return text
    return text.replace(token, REDACTED)


def status_of(error) -> BlobStatus:
    """
    Classification carried by ``error``

    Errors raised by this package carry a ``status`` attribute; other azure
    errors are classified from their status code.
    """
    status = getattr(error, "status", None)
    if isinstance(status, BlobStatus):
        return status
    return BlobStatus.from_status_code(getattr(error, "status_code", None))


def raise_for_status(status_code, expected, method, url, sas_token, reason=None):
    """
    Raise the azure-core error matching an unexpected response status

    Parameters
    ----------
    status_code: int
        Status of the response
    expected: Iterable[int]
        Statuses counting as success
    method: str
        HTTP method of the request, used in the message
    url: str
        Request URL. It is redacted before being put in the message
    sas_token: str
        Credential to redact
    reason: str
        Reason phrase of the response
    """
    if status_code in expected:
        return
    status = BlobStatus.from_status_code(status_code)
    message = redact(f"{method} {url} failed with {status_code} {reason or ''}", sas_token)
    error = _ERROR_MAP.get(status, HttpResponseError)(message=message.strip())
    error.status_code = status_code
    error.reason = reason
    error.status = status
    raise error
