from b2client.files import FileInfo
from b2client.interfaces import IBucket
from b2client.listing import Listing
from b2client.pool import UploadURLPool
from b2client.upload import prepare_upload
from b2client.upload import upload_with_sha1 as send_upload
from zope.interface import implementer


@implementer(IBucket)
class Bucket:
    """A bucket bound to the Client that produced it.

    Safe for concurrent use. Uploads through the same Bucket share its
    pool of upload URLs, so keep and reuse the object.
    """

    def __init__(self, client, bucket_id, name=None):
        self._client = client
        self.id = bucket_id
        self.name = name
        self.upload_urls = UploadURLPool(client, bucket_id)

    def __repr__(self):
        return f"<Bucket {self.name or self.id}>"

    def delete(self):
        """Delete the bucket. The object is unusable afterwards."""
        self._client.post("b2_delete_bucket", {"bucketId": self.id})

    def upload(self, content, name, mime_type=""):
        """Upload content as a new version of name and return its file id.

        ``content`` is bytes or a binary stream. An empty mime_type is sent
        as is and the service picks the type.
        """
        body, sha1, length = prepare_upload(content)
        return self.upload_with_sha1(body, name, mime_type, sha1, length)

    def upload_with_sha1(self, content, name, mime_type, sha1, length):
        """Like upload, with the hex SHA1 and byte length supplied by the caller.

        Never buffers. Streams that are not seekable are sent only once.
        """
        return send_upload(
            self._client.http, self.upload_urls, content, name, mime_type, sha1, length
        )

    def hide_file(self, name):
        data = self._client.post(
            "b2_hide_file", {"bucketId": self.id, "fileName": name}
        )
        return FileInfo.from_api(data)

    def list_files(self, from_name="", page_size=100):
        """List the latest version of each visible file, sorted by name.

        Starts at from_name, included if it exists.
        """
        return Listing(self._client, self.id, from_name, page_size=page_size)

    def list_file_versions(self, from_name="", from_id="", page_size=100):
        """List every version, by name and then newest first.

        Raises InvalidListingError if from_id is given without from_name.
        """
        return Listing(
            self._client, self.id, from_name, from_id, page_size, versions=True
        )

    def get_file_info_by_name(self, name):
        """Return the latest FileInfo of name, or None if there is none."""
        listing = self.list_files(name, page_size=1)
        if listing.advance() and listing.current().name == name:
            return listing.current()
        if listing.last_error() is not None:
            raise listing.last_error()
        return None
