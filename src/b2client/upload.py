"""Checksum preparation and the retrying upload loop.

B2 requires the SHA1 of the content before the transfer starts. Content
that is already in memory is hashed in place, seekable streams are read
twice, and anything else is buffered once while hashing.
"""

from b2client.errors import B2ClientError
from b2client.errors import B2Error
from b2client.errors import B2TransportError
from b2client.errors import UnexpectedResponseError
from b2client.errors import wrap_request_error
from urllib.parse import quote_plus

import hashlib
import httpx
import io
import logging


logger = logging.getLogger(__name__)

MAX_UPLOAD_ATTEMPTS = 5
CHUNK_SIZE = 64 * 1024

# Upload URL answers that mean the endpoint itself is unusable: expired
# token, timeout, or a pod that is failing or busy.
ENDPOINT_FAILURE_STATUSES = frozenset({401, 408, 500, 503})

_BYTES_TYPES = (bytes, bytearray, memoryview)


def _is_seekable(stream):
    seekable = getattr(stream, "seekable", None)
    return callable(seekable) and seekable()


def _iter_chunks(stream):
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def prepare_upload(content):
    """Return ``(body, sha1_hex, length)`` ready for :func:`upload_with_sha1`.

    ``content`` may be a bytes-like object or a binary stream. Streams are
    consumed from their current position.
    """
    if isinstance(content, _BYTES_TYPES):
        with memoryview(content) as view:
            return content, hashlib.sha1(view).hexdigest(), view.nbytes

    if hasattr(content, "getbuffer"):
        start = content.tell()
        with content.getbuffer() as view, view[start:] as remaining:
            return content, hashlib.sha1(remaining).hexdigest(), remaining.nbytes

    h = hashlib.sha1()
    if _is_seekable(content):
        start = content.tell()
        length = 0
        for chunk in _iter_chunks(content):
            h.update(chunk)
            length += len(chunk)
        content.seek(start)
        return content, h.hexdigest(), length

    buffer = io.BytesIO()
    for chunk in _iter_chunks(content):
        h.update(chunk)
        buffer.write(chunk)
    length = buffer.tell()
    buffer.seek(0)
    return buffer, h.hexdigest(), length


def _body_factory(content):
    """Return a callable producing a fresh request body, or None.

    None means the content can only be sent once.
    """
    if isinstance(content, bytes):
        return lambda: content
    if isinstance(content, _BYTES_TYPES):
        data = bytes(content)
        return lambda: data
    if _is_seekable(content):
        start = content.tell()

        def rewind():
            content.seek(start)
            return _iter_chunks(content)

        return rewind
    return None


def upload_with_sha1(http, pool, content, name, mime_type, sha1, length):
    """POST content to an upload URL from pool and return the new file id.

    Transport failures and endpoint-scoped errors discard the endpoint and
    retry with another one, up to MAX_UPLOAD_ATTEMPTS in total. Other remote
    errors release the endpoint and are raised at once. Content that cannot
    be rewound gets a single attempt.
    """
    headers = {
        "X-Bz-File-Name": quote_plus(name),
        "Content-Type": mime_type,
        "Content-Length": str(length),
        "X-Bz-Content-Sha1": sha1,
    }
    make_body = _body_factory(content)
    attempts = MAX_UPLOAD_ATTEMPTS if make_body is not None else 1
    last_error = None

    for attempt in range(1, attempts + 1):
        endpoint = pool.acquire()
        body = make_body() if make_body is not None else _iter_chunks(content)
        try:
            response = http.post(
                endpoint.upload_url,
                content=body,
                headers={**headers, "Authorization": endpoint.authorization_token},
            )
        except httpx.TransportError as e:
            logger.debug(
                "Upload of %r failed on attempt %d/%d: %s", name, attempt, attempts, e
            )
            last_error = e
            continue
        except httpx.RequestError as e:
            wrap_request_error(e, "b2_upload_file")

        if response.status_code != 200:
            error = B2Error.from_response(response, "b2_upload_file")
            if response.status_code in ENDPOINT_FAILURE_STATUSES:
                logger.debug(
                    "Discarding upload URL after status %d on attempt %d/%d",
                    response.status_code,
                    attempt,
                    attempts,
                )
                last_error = error
                continue
            pool.release(endpoint)
            raise error

        pool.release(endpoint)
        try:
            return response.json()["fileId"]
        except (ValueError, KeyError, TypeError) as e:
            raise UnexpectedResponseError(
                "failed to decode b2_upload_file answer",
                status=response.status_code,
                operation="b2_upload_file",
            ) from e

    if isinstance(last_error, B2ClientError):
        raise last_error
    raise B2TransportError(
        f"b2_upload_file failed after {attempts} attempts: {last_error}",
        operation="b2_upload_file",
    ) from last_error
