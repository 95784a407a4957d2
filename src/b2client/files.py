from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from types import MappingProxyType
from urllib.parse import unquote_plus


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INFO_HEADER_PREFIX = "x-bz-info-"


def _from_millis(millis):
    return _EPOCH + timedelta(milliseconds=int(millis))


@dataclass(frozen=True)
class FileInfo:
    """Metadata of one file version or hide marker.

    If ``action`` is ``"hide"``, ``id`` refers to the hiding event and not
    to downloadable content.
    """

    id: str
    name: str
    bucket_id: str = ""
    content_sha1: str = ""
    content_length: int = 0
    content_type: str = ""
    custom_metadata: MappingProxyType = field(default_factory=dict, hash=False)
    upload_timestamp: datetime = _EPOCH
    action: str = "upload"

    def __post_init__(self):
        # read-only copy so the record stays immutable
        object.__setattr__(
            self, "custom_metadata", MappingProxyType(dict(self.custom_metadata))
        )

    @property
    def is_hidden(self):
        return self.action == "hide"

    @classmethod
    def from_api(cls, data):
        """Decode a file object as returned by the list and info calls."""
        return cls(
            id=data["fileId"],
            name=data["fileName"],
            bucket_id=data.get("bucketId") or "",
            content_sha1=data.get("contentSha1") or "",
            content_length=int(data.get("contentLength") or 0),
            content_type=data.get("contentType") or "",
            custom_metadata=data.get("fileInfo") or {},
            upload_timestamp=_from_millis(data.get("uploadTimestamp") or 0),
            action=data.get("action") or "upload",
        )

    @classmethod
    def from_headers(cls, headers):
        """Decode the X-Bz-* headers of a download response."""
        metadata = {
            key.lower()[len(_INFO_HEADER_PREFIX):]: unquote_plus(value)
            for key, value in headers.items()
            if key.lower().startswith(_INFO_HEADER_PREFIX)
        }
        return cls(
            id=headers.get("x-bz-file-id", ""),
            name=unquote_plus(headers.get("x-bz-file-name", "")),
            content_sha1=headers.get("x-bz-content-sha1", ""),
            content_length=int(headers.get("content-length") or 0),
            content_type=headers.get("content-type", ""),
            custom_metadata=metadata,
            upload_timestamp=_from_millis(headers.get("x-bz-upload-timestamp") or 0),
        )
