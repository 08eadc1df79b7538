"""MinIO storage client implementation."""

import io

from minio import Minio

from aligned_pipeline.exceptions import StorageDownloadError, StorageUploadError
from aligned_pipeline.logging import setup_logging

from .interfaces import StorageClient

logger = setup_logging()


class MinioStorageClient(StorageClient):
    """Storage client implementation using MinIO."""

    def __init__(self, client: Minio):
        self._client = client

    def download(self, bucket_name: str, object_name: str) -> bytes:
        """
        Downloads a file from MinIO.

        Args:
            bucket_name: The storage bucket name.
            object_name: The object path/name in storage.

        Returns:
            The raw file contents.

        Raises:
            StorageDownloadError: If the download fails.
        """
        try:
            response = self._client.get_object(bucket_name, object_name)
            try:
                data = response.data
                logger.info(
                    "File downloaded",
                    extra={"bucket": bucket_name, "object": object_name, "bytes": len(data)},
                )
                return data
            finally:
                response.close()
                response.release_conn()
        except Exception as e:
            logger.exception(
                "Download failed",
                extra={"bucket": bucket_name, "object": object_name},
            )
            raise StorageDownloadError(object_name, cause=e) from e

    def upload(
        self,
        bucket_name: str,
        object_name: str,
        data: bytes,
        content_type: str,
    ) -> None:
        """
        Uploads a file to MinIO.

        Raises:
            StorageUploadError: If the upload fails.
        """
        try:
            self._client.put_object(
                bucket_name,
                object_name,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
            logger.info(
                "File uploaded",
                extra={"bucket": bucket_name, "object": object_name, "bytes": len(data)},
            )
        except Exception as e:
            logger.exception(
                "Upload failed",
                extra={"bucket": bucket_name, "object": object_name},
            )
            raise StorageUploadError(object_name, cause=e) from e

    def find(self, bucket_name: str, prefix: str) -> str | None:
        for item in self._client.list_objects(bucket_name, prefix=prefix, recursive=True):
            return item.object_name
        return None

    def ensure_bucket_exists(self, bucket_name: str) -> None:
        """
        Ensures a bucket exists in MinIO, creating it if necessary.

        Args:
            bucket_name: The bucket name to ensure exists.
        """
        if not self._client.bucket_exists(bucket_name):
            self._client.make_bucket(bucket_name)
            logger.info("Bucket created", extra={"bucket": bucket_name})
        else:
            logger.info("Bucket exists", extra={"bucket": bucket_name})
