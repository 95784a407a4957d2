from b2client.errors import UnexpectedResponseError
from b2client.interfaces import IUploadURLPool
from dataclasses import dataclass
from zope.interface import implementer

import logging
import threading


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadEndpoint:
    """Upload URL plus the short-lived token that authorizes it."""

    upload_url: str
    authorization_token: str


@implementer(IUploadURLPool)
class UploadURLPool:
    """Spare upload endpoints for a single bucket.

    An endpoint in the pool is unused since its last successful upload.
    Acquiring from an empty pool fetches a fresh endpoint instead of
    waiting, so the lock only guards the list itself.
    """

    def __init__(self, client, bucket_id):
        self._client = client
        self.bucket_id = bucket_id
        self._spare = []
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._spare)

    def acquire(self):
        with self._lock:
            if self._spare:
                return self._spare.pop()
        return self._fetch()

    def release(self, endpoint):
        with self._lock:
            self._spare.append(endpoint)

    def _fetch(self):
        data = self._client.post("b2_get_upload_url", {"bucketId": self.bucket_id})
        try:
            endpoint = UploadEndpoint(
                upload_url=data["uploadUrl"],
                authorization_token=data["authorizationToken"],
            )
        except (KeyError, TypeError) as e:
            raise UnexpectedResponseError(
                f"b2_get_upload_url answer missing {e}",
                operation="b2_get_upload_url",
            ) from e
        logger.debug("Fetched new upload URL for bucket %s", self.bucket_id)
        return endpoint
