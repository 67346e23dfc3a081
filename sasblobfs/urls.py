# -*- coding: utf-8 -*-
from urllib.parse import quote


def account_url_for(account_name: str) -> str:
    return f"https://{account_name}.blob.core.windows.net"


def build_blob_url(account_url: str, container: str, key: str, sas_token: str) -> str:
    """
    URL of a blob, signed with the SAS token

    Parameters
    ----------
    account_url: str
        Endpoint of the storage account, like ``https://account.blob.core.windows.net``
    container: str
        Name of the container holding the blob
    key: str
        Blob key, used as given
    sas_token: str
        Shared access signature appended as the query string
    """
    return f"{account_url.rstrip('/')}/{container}/{key}?{sas_token.lstrip('?')}"


def build_block_url(blob_url: str, block_id: str) -> str:
    return f"{blob_url}&comp=block&blockid={quote(block_id, safe='')}"


def build_blocklist_url(blob_url: str) -> str:
    return f"{blob_url}&comp=blocklist"


def build_properties_url(blob_url: str) -> str:
    return f"{blob_url}&comp=properties"
