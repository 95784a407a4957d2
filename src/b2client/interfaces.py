from zope.interface import Attribute
from zope.interface import Interface


class IClient(Interface):
    """Authenticated session against the B2 API."""

    account_id = Attribute("Authorized account identifier.")
    authorization_token = Attribute("Token sent with every API call.")
    api_url = Attribute("Base URL for API calls.")
    download_url = Attribute("Base URL for downloads.")

    def post(endpoint, params=None):
        """Issue an authenticated API call and return the decoded JSON body.

        Raises B2Error for structured remote errors.
        """


class IUploadURLPool(Interface):
    """Per-bucket set of spare upload endpoints."""

    def acquire():
        """Return a spare UploadEndpoint, fetching a new one if none is left."""

    def release(endpoint):
        """Make an endpoint available for reuse after a successful upload."""


class IListing(Interface):
    """Lazy cursor over the files of a bucket."""

    def advance():
        """Move to the next record, fetching a page if needed.

        Returns False on exhaustion or failure; last_error() tells them apart.
        """

    def current():
        """Return the FileInfo made available by the last advance()."""

    def last_error():
        """Return the terminal error, or None."""


class IBucket(Interface):
    """A bucket bound to the client that produced it."""

    id = Attribute("Opaque bucket identifier.")

    def upload(content, name, mime_type=""):
        """Upload content and return the new file id."""

    def upload_with_sha1(content, name, mime_type, sha1, length):
        """Upload content whose SHA1 and length are already known."""

    def list_files(from_name="", page_size=100):
        """Return an IListing over the latest version of each file."""

    def list_file_versions(from_name="", from_id="", page_size=100):
        """Return an IListing over every file version."""

    def get_file_info_by_name(name):
        """Return the latest FileInfo for name, or None."""
