from b2client.errors import B2ClientError
from b2client.errors import InvalidListingError
from b2client.errors import UnexpectedResponseError
from b2client.files import FileInfo
from b2client.interfaces import IListing
from zope.interface import implementer

import logging


logger = logging.getLogger(__name__)


@implementer(IListing)
class Listing:
    """Cursor over the files of a bucket, fetching pages on demand.

    Works like a database cursor: call :meth:`advance` and read
    :meth:`current` while it returns True, then check :meth:`last_error`
    to tell exhaustion from failure::

        listing = bucket.list_files()
        while listing.advance():
            print(listing.current().name)
        if listing.last_error() is not None:
            ...

    Iterating over the listing does the same and raises the error instead.
    A listing must not be advanced from several threads at once.
    """

    def __init__(self, client, bucket_id, from_name="", from_id="", page_size=100,
                 versions=False):
        if versions and from_id and not from_name:
            raise InvalidListingError("can't set from_id if from_name is not set")
        self._client = client
        self.bucket_id = bucket_id
        self.versions = versions
        self.page_size = page_size
        self._next_name = from_name
        self._next_id = from_id or None
        # Pending records of the current page, last element is current().
        self._records = []
        self._error = None

    def advance(self):
        if self._error is not None:
            return False
        if self._records:
            self._records.pop()
        if self._records:
            return True
        if self._next_name is None:
            return False

        try:
            self._fetch_page()
        except B2ClientError as e:
            self._error = e
            return False
        return bool(self._records)

    def current(self):
        return self._records[-1]

    def last_error(self):
        return self._error

    def __iter__(self):
        while self.advance():
            yield self.current()
        if self._error is not None:
            raise self._error

    def _fetch_page(self):
        endpoint = "b2_list_file_versions" if self.versions else "b2_list_file_names"
        params = {
            "bucketId": self.bucket_id,
            "startFileName": self._next_name,
            "maxFileCount": self.page_size,
        }
        if self.versions and self._next_id:
            params["startFileId"] = self._next_id

        data = self._client.post(endpoint, params)
        try:
            records = [FileInfo.from_api(f) for f in data.get("files") or []]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UnexpectedResponseError(
                f"failed to decode {endpoint} answer", operation=endpoint
            ) from e
        records.reverse()
        self._records = records
        self._next_name = data.get("nextFileName")
        self._next_id = data.get("nextFileId")
        logger.debug(
            "%s returned %d records for bucket %s (next=%r)",
            endpoint,
            len(records),
            self.bucket_id,
            self._next_name,
        )
