import pytest

from sasblobfs import BlobClient, BlobFileSystem
from sasblobfs.tests.constants import ACCOUNT_NAME, CONTAINER, SAS_TOKEN, data
from sasblobfs.tests.fake import FakeBlobService

# Small sizes so block uploads are exercised without large payloads
THRESHOLD = 10
BLOCK_SIZE = 4


@pytest.fixture()
def service():
    """
    Fake blob service holding a few blobs
    """
    service = FakeBlobService()
    service.put_blob(CONTAINER, "top_file.txt", data)
    service.put_blob(CONTAINER, "root/rfile.txt", data)
    return service


@pytest.fixture()
def client(service):
    return BlobClient(
        ACCOUNT_NAME,
        CONTAINER,
        SAS_TOKEN,
        transport=service,
        uploader_options={"threshold": THRESHOLD, "block_size": BLOCK_SIZE},
    )


@pytest.fixture()
def fs(service):
    return BlobFileSystem(
        account_name=ACCOUNT_NAME,
        sas_token=SAS_TOKEN,
        transport=service,
        multipart_threshold=THRESHOLD,
        block_size=BLOCK_SIZE,
        skip_instance_cache=True,
    )
