"""Protocol interface for the object store.

The registry, executor and publisher only need list/head/get/put against a
bucket; this protocol is the whole contract they depend on.
"""

from __future__ import annotations

from typing import Protocol


class ObjectStoreProtocol(Protocol):
    """Minimal object storage capability interface.

    The S3ObjectStore is the primary implementation.
    """

    def list_prefixes(self, bucket: str, prefix: str) -> list[str]:
        """List immediate child prefixes under ``prefix`` (delimiter ``/``).

        Args:
            bucket: Bucket name.
            prefix: Prefix ending with ``/`` (or empty for the bucket root).

        Returns:
            Full child prefixes, each ending with ``/``.

        Raises:
            StorageError: If the list call fails.
        """
        ...

    def list_keys(self, bucket: str, prefix: str) -> list[str]:
        """List every object key under ``prefix`` (no delimiter).

        Raises:
            StorageError: If the list call fails.
        """
        ...

    def head(self, bucket: str, key: str) -> bool:
        """Check whether an object exists without fetching its body.

        Returns:
            True if present, False on a not-found signal.

        Raises:
            StorageError: For any failure other than not-found.
        """
        ...

    def get(self, bucket: str, key: str) -> bytes:
        """Fetch an object's body.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageError: If the read fails.
        """
        ...

    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
        if_none_match: bool = False,
    ) -> None:
        """Write an object.

        Args:
            bucket: Bucket name.
            key: Object key.
            body: Object content.
            content_type: Optional MIME type.
            if_none_match: Create only if the key does not exist yet.

        Raises:
            ObjectExistsError: If ``if_none_match`` is set and the key exists.
            StorageError: If the write fails.
        """
        ...
