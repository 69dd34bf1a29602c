"""Shared fixtures for files app tests."""

import boto3
import pytest
from moto import mock_aws

from filehub.apps.accounts.logic.credentials import create_user
from filehub.apps.files.infrastructure.filesystem import FilesystemStorage
from filehub.apps.files.infrastructure.s3 import S3Storage
from filehub.apps.files.models import Repository

BUCKET = 'filehub-test'


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return create_user('testuser', 'testpass123', 'test@example.com')


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return create_user('otheruser', 'testpass123', 'other@example.com')


@pytest.fixture
def fs_storage(tmp_path):
    """Filesystem backend rooted in a temporary directory.

    Returns:
        FilesystemStorage instance.
    """
    return FilesystemStorage(str(tmp_path))


@pytest.fixture
def s3_client():
    """Mock S3 service with the test bucket.

    Yields:
        boto3 S3 client with the bucket created.
    """
    with mock_aws():
        client = boto3.client('s3', region_name='us-east-1')
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def s3_storage(s3_client):
    """S3 backend over the mocked bucket.

    Returns:
        S3Storage instance.
    """
    return S3Storage(bucket=BUCKET, prefix='data', client=s3_client)


@pytest.fixture
def repository(user, tmp_path):
    """Home repository of the test user on the local filesystem.

    Returns:
        Repository whose root directory exists.
    """
    repo = Repository.objects.create(
        owner=user,
        name=user.username,
        root_uri=tmp_path.as_uri(),
    )
    (tmp_path / repo.name).mkdir()
    return repo
