"""
Blob storage for uploaded files (insumos) and product images.

Two backends share one interface:
- LocalBlobStorage: Django's default storage (MEDIA_ROOT on disk by default)
- AzureBlobStorage: Azure Blob Storage container, optionally with SAS-signed URLs

Objects are addressed by a bucket ("insumos", "product-images") plus a path inside
it. upload() returns the stored path; public_url() resolves it to a URL.
"""
import logging
import random
import string
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, unquote, urlsplit

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import (
    BlobServiceClient, ContainerSasPermissions, ContentSettings, generate_container_sas
)
from django.conf import settings
from django.core.files.storage import default_storage

from .exceptions import StorageError

logger = logging.getLogger(__name__)


def generate_blob_name(filename):
    """Unique object name keeping the original extension: <epoch-ms>-<random>.<ext>"""
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=7))
    stem = f"{int(time.time() * 1000)}-{suffix}"
    if filename and '.' in filename:
        return f"{stem}.{filename.rsplit('.', 1)[-1].lower()}"
    return stem


class BlobStorage:
    """Common interface of the blob storage backends"""

    def __init__(self, bucket):
        self.bucket = bucket

    def upload(self, path, content, content_type=None):
        raise NotImplementedError

    def public_url(self, path):
        raise NotImplementedError

    def remove(self, paths):
        raise NotImplementedError

    def path_from_url(self, url):
        """
        Recover the object path from a public URL.
        Uses the part after /<bucket>/ when present, else the last URL segment.
        """
        if not url:
            return None
        url_path = unquote(urlsplit(url).path)
        marker = f"/{self.bucket}/"
        if marker in url_path:
            return url_path.split(marker, 1)[1]
        return url_path.rsplit('/', 1)[-1] or None


class LocalBlobStorage(BlobStorage):
    """Stores blobs through django.core.files.storage.default_storage"""

    def __init__(self, bucket, storage=None):
        super().__init__(bucket)
        self.storage = storage or default_storage

    def _name(self, path):
        return f"{self.bucket}/{path}"

    def upload(self, path, content, content_type=None):
        try:
            stored_name = self.storage.save(self._name(path), content)
        except OSError as e:
            logger.error(f"Local upload failed for {path}: {str(e)}")
            raise StorageError(f"Falha no upload: {str(e)}") from e
        return stored_name[len(self.bucket) + 1:]

    def public_url(self, path):
        return self.storage.url(self._name(path))

    def remove(self, paths):
        for path in paths:
            try:
                self.storage.delete(self._name(path))
            except OSError as e:
                raise StorageError(f"Falha ao excluir arquivo: {str(e)}") from e


class AzureBlobStorage(BlobStorage):
    """Stores blobs in an Azure Storage container under <folder><bucket>/<path>"""

    def __init__(self, bucket, account_name=None, account_key=None, container=None,
                 folder=None, use_sas_tokens=None):
        super().__init__(bucket)
        self.account_name = account_name or settings.AZURE_STORAGE_ACCOUNT_NAME
        self.account_key = account_key or settings.AZURE_STORAGE_ACCOUNT_KEY
        self.container = container or settings.AZURE_STORAGE_CONTAINER
        folder = settings.AZURE_BLOB_FOLDER if folder is None else folder
        # Folder path must end with / when provided
        if folder and not folder.endswith('/'):
            folder += '/'
        self.folder = folder
        self.use_sas_tokens = settings.AZURE_USE_SAS_TOKENS if use_sas_tokens is None else use_sas_tokens
        self._service = None

    @property
    def service(self):
        if self._service is None:
            connection_string = (
                f"DefaultEndpointsProtocol=https;AccountName={self.account_name};"
                f"AccountKey={self.account_key};EndpointSuffix=core.windows.net"
            )
            self._service = BlobServiceClient.from_connection_string(connection_string)
        return self._service

    def _blob_name(self, path):
        return f"{self.folder}{self.bucket}/{path}"

    def upload(self, path, content, content_type=None):
        blob_client = self.service.get_blob_client(container=self.container, blob=self._blob_name(path))
        content_settings = ContentSettings(content_type=content_type) if content_type else None
        try:
            blob_client.upload_blob(content, overwrite=False, content_settings=content_settings)
        except AzureError as e:
            logger.error(f"Azure upload failed for {path}: {str(e)}")
            raise StorageError(f"Falha no upload: {str(e)}") from e
        return path

    def generate_sas_token(self, expiry_hours=8760):
        """Read-only SAS token for the whole container (default: 1 year)"""
        expiry_time = datetime.now(timezone.utc) + timedelta(hours=expiry_hours)
        return generate_container_sas(
            account_name=self.account_name,
            container_name=self.container,
            account_key=self.account_key,
            permission=ContainerSasPermissions(read=True),
            expiry=expiry_time
        )

    def public_url(self, path):
        # Keep forward slashes, they are path separators in Azure
        encoded_blob_name = quote(self._blob_name(path), safe='/')
        base_url = f"https://{self.account_name}.blob.core.windows.net/{self.container}/{encoded_blob_name}"
        if self.use_sas_tokens and self.account_key:
            return f"{base_url}?{self.generate_sas_token()}"
        return base_url

    def remove(self, paths):
        for path in paths:
            blob_client = self.service.get_blob_client(container=self.container, blob=self._blob_name(path))
            try:
                blob_client.delete_blob()
            except ResourceNotFoundError:
                # Already gone
                continue
            except AzureError as e:
                raise StorageError(f"Falha ao excluir arquivo: {str(e)}") from e


def get_blob_storage(bucket):
    """Storage backend for a bucket, chosen by settings.BLOB_STORAGE_BACKEND"""
    if settings.BLOB_STORAGE_BACKEND == 'azure':
        return AzureBlobStorage(bucket)
    return LocalBlobStorage(bucket)
