"""Abstract interface for raw capture storage."""

from abc import ABC, abstractmethod


class StorageClient(ABC):
    """Abstract base class for file storage backends."""

    @abstractmethod
    def download(self, bucket_name: str, object_name: str) -> bytes:
        """
        Downloads a file from storage.

        Raises:
            StorageDownloadError: If the download fails.
        """

    @abstractmethod
    def upload(
        self,
        bucket_name: str,
        object_name: str,
        data: bytes,
        content_type: str,
    ) -> None:
        """
        Uploads a file to storage.

        Raises:
            StorageUploadError: If the upload fails.
        """

    @abstractmethod
    def find(self, bucket_name: str, prefix: str) -> str | None:
        """Returns the first object name under `prefix`, or None."""

    @abstractmethod
    def ensure_bucket_exists(self, bucket_name: str) -> None:
        """Ensures a bucket exists, creating it if necessary."""
