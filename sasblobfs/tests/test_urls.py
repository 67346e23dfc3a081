from sasblobfs.urls import (
    account_url_for,
    build_blob_url,
    build_block_url,
    build_blocklist_url,
    build_properties_url,
)
from sasblobfs.tests.constants import ACCOUNT_NAME, ACCOUNT_URL, SAS_TOKEN

BLOB_URL = f"{ACCOUNT_URL}/data/root/a/file.txt?{SAS_TOKEN}"


def test_account_url():
    assert account_url_for(ACCOUNT_NAME) == ACCOUNT_URL


def test_blob_url():
    assert build_blob_url(ACCOUNT_URL, "data", "root/a/file.txt", SAS_TOKEN) == BLOB_URL
    # a leading "?" on the token or a trailing "/" on the endpoint are not doubled
    assert (
        build_blob_url(ACCOUNT_URL + "/", "data", "root/a/file.txt", "?" + SAS_TOKEN)
        == BLOB_URL
    )


def test_key_is_not_normalized():
    url = build_blob_url(ACCOUNT_URL, "data", "root//a b.txt", SAS_TOKEN)
    assert url == f"{ACCOUNT_URL}/data/root//a b.txt?{SAS_TOKEN}"


def test_operation_urls():
    assert build_block_url(BLOB_URL, "MDAwMDAw") == BLOB_URL + "&comp=block&blockid=MDAwMDAw"
    assert build_blocklist_url(BLOB_URL) == BLOB_URL + "&comp=blocklist"
    assert build_properties_url(BLOB_URL) == BLOB_URL + "&comp=properties"


def test_block_id_is_quoted():
    assert build_block_url(BLOB_URL, "ab+/=").endswith("&blockid=ab%2B%2F%3D")
