from b2client.errors import ChecksumMismatchError
from b2client.errors import wrap_request_error
from b2client.files import FileInfo

import hashlib
import httpx


class Download:
    """Streaming reader over a download response.

    The SHA1 of the bytes read is compared with the one announced by the
    service when the end of the body is reached. After a mismatch every
    read raises again and no buffered byte is handed out. Nothing is cached.
    """

    def __init__(self, response):
        self._response = response
        self.info = FileInfo.from_headers(response.headers)
        self._chunks = response.iter_bytes()
        self._pending = b""
        self._sha1 = hashlib.sha1()
        self._eof = False
        self._mismatch = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self._response.close()

    def read(self, size=-1):
        if self._mismatch is not None:
            raise self._mismatch
        while not self._eof and (size < 0 or len(self._pending) < size):
            try:
                chunk = next(self._chunks)
            except StopIteration:
                self._finish()
                break
            except httpx.RequestError as e:
                wrap_request_error(e, f"download of {self.info.name!r}")
            self._sha1.update(chunk)
            self._pending += chunk

        if size < 0:
            data, self._pending = self._pending, b""
        else:
            data, self._pending = self._pending[:size], self._pending[size:]
        return data

    def _finish(self):
        self._eof = True
        expected = self.info.content_sha1
        # Large files uploaded in parts carry no whole-file SHA1.
        if not expected or expected == "none":
            return
        actual = self._sha1.hexdigest()
        if actual != expected:
            self._pending = b""
            self._mismatch = ChecksumMismatchError(expected, actual)
            raise self._mismatch
