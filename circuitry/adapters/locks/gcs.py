"""
GCSLockBackend — Google Cloud Storage lock store using google-cloud-storage.

Install extras: pip install "circuitry[gcs]"

Layout
------
One blob per lock, named `<prefix><key>`, holding a JSON LockRecord:

  locks/circuitry:lock:abc  →  {"key": "circuitry:lock:abc",
                                "expires_at": "2024-01-01T00:15:00Z"}

Atomicity
---------
GCS preconditions on object generation numbers give check-and-set:

  lock()  → upload with if_generation_match=0 ("blob must not exist yet").
            If a record exists but has expired, it is replaced with
            if_generation_match=<generation we read>. Either way a racer that
            loses gets PreconditionFailed and re-evaluates.
  reap()  → deletes an expired blob with if_generation_match=<generation we
            read>, so a lock re-acquired between the read and the delete is
            never removed.

Note: google-cloud-storage is synchronous. All operations are wrapped in
asyncio.to_thread to avoid blocking the event loop.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from types import ModuleType
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from circuitry.domain.errors import LockBackendError
from circuitry.domain.models import LockRecord, utcnow

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from google.cloud.storage import Client as GCSClient


def _api_exceptions() -> ModuleType:
    try:
        from google.api_core import exceptions as gapi_exc  # type: ignore[import-untyped]
    except ImportError as exc:
        raise ImportError(
            "GCSLockBackend requires google-cloud-storage. "
            "Install with: pip install 'circuitry[gcs]'"
        ) from exc
    return gapi_exc


@dataclasses.dataclass
class GCSLockBackend:
    """
    Google Cloud Storage lock backend.

    Parameters
    ----------
    bucket_name : GCS bucket name
    prefix      : blob name prefix for lock records (default "locks/")
    client      : google.cloud.storage.Client — created lazily if omitted
    clock       : returns the current aware datetime; injectable for tests
    max_retries : attempts when a precondition race is lost (default 5)
    """

    bucket_name: str
    prefix: str = "locks/"
    client: GCSClient | None = None
    clock: Callable[[], datetime] = utcnow
    max_retries: int = 5

    def _get_client(self) -> GCSClient:
        if self.client is not None:
            return self.client
        try:
            from google.cloud import storage  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "GCSLockBackend requires google-cloud-storage. "
                "Install with: pip install 'circuitry[gcs]'"
            ) from exc
        return storage.Client()  # type: ignore[return-value]

    def _blob_name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def lock(self, key: str, ttl: timedelta) -> bool:
        return await self._run("lock", self._sync_lock, key, ttl)

    async def ttl(self, key: str) -> datetime | None:
        return await self._run("ttl", self._sync_ttl, key)

    async def unlock(self, key: str) -> None:
        await self._run("unlock", self._sync_unlock, key)

    async def reap(self) -> int:
        return await self._run("reap", self._sync_reap)

    async def _run(self, op: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except (ImportError, LockBackendError):
            raise
        except Exception as exc:
            raise LockBackendError(f"GCS {op} failed", exc) from exc

    # ------------------------------------------------------------------ #
    # Synchronous implementations (executed in a thread-pool worker)      #
    # ------------------------------------------------------------------ #

    def _sync_lock(self, key: str, ttl: timedelta) -> bool:
        gapi_exc = _api_exceptions()
        bucket = self._get_client().bucket(self.bucket_name)  # type: ignore[attr-defined]
        name = self._blob_name(key)

        for _ in range(self.max_retries):
            now = self.clock()
            generation = 0
            try:
                existing = bucket.get_blob(name)
                if existing is not None:
                    current = LockRecord.model_validate_json(
                        existing.download_as_bytes(if_generation_match=existing.generation)
                    )
                    if current.is_live(now):
                        return False
                    generation = existing.generation

                record = LockRecord(key=key, expires_at=now + ttl)
                bucket.blob(name).upload_from_string(  # type: ignore[attr-defined]
                    record.model_dump_json(),
                    content_type="application/json",
                    if_generation_match=generation,
                )
                return True
            except (gapi_exc.PreconditionFailed, gapi_exc.NotFound):
                # Another writer or the reaper got there first; re-read.
                continue
        return False

    def _sync_ttl(self, key: str) -> datetime | None:
        gapi_exc = _api_exceptions()
        bucket = self._get_client().bucket(self.bucket_name)  # type: ignore[attr-defined]
        try:
            blob = bucket.get_blob(self._blob_name(key))
            if blob is None:
                return None
            return LockRecord.model_validate_json(blob.download_as_bytes()).expires_at
        except gapi_exc.NotFound:
            return None

    def _sync_unlock(self, key: str) -> None:
        gapi_exc = _api_exceptions()
        bucket = self._get_client().bucket(self.bucket_name)  # type: ignore[attr-defined]
        try:
            bucket.blob(self._blob_name(key)).delete()  # type: ignore[attr-defined]
        except gapi_exc.NotFound:
            pass

    def _sync_reap(self) -> int:
        gapi_exc = _api_exceptions()
        client = self._get_client()
        now = self.clock()
        removed = 0
        for blob in client.list_blobs(self.bucket_name, prefix=self.prefix):  # type: ignore[attr-defined]
            try:
                record = LockRecord.model_validate_json(
                    blob.download_as_bytes(if_generation_match=blob.generation)
                )
                if record.is_live(now):
                    continue
                blob.delete(if_generation_match=blob.generation)
                removed += 1
            except (gapi_exc.PreconditionFailed, gapi_exc.NotFound):
                # Re-acquired or already deleted since listing.
                continue
            except ValidationError as exc:
                logger.warning("Skipping unreadable lock record %s: %s", blob.name, exc)
                continue
        return removed
