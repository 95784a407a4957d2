"""Client for the Backblaze B2 native API."""

from b2client.bucket import Bucket
from b2client.client import Client
from b2client.config import Settings
from b2client.download import Download
from b2client.errors import B2ClientError
from b2client.errors import B2Error
from b2client.errors import B2TransportError
from b2client.errors import ChecksumMismatchError
from b2client.errors import InvalidListingError
from b2client.errors import UnexpectedResponseError
from b2client.files import FileInfo
from b2client.listing import Listing
from b2client.pool import UploadEndpoint
from b2client.pool import UploadURLPool


__all__ = [
    "B2ClientError",
    "B2Error",
    "B2TransportError",
    "Bucket",
    "ChecksumMismatchError",
    "Client",
    "Download",
    "FileInfo",
    "InvalidListingError",
    "Listing",
    "Settings",
    "UnexpectedResponseError",
    "UploadEndpoint",
    "UploadURLPool",
]
