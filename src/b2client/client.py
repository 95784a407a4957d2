from b2client.bucket import Bucket
from b2client.download import Download
from b2client.errors import B2Error
from b2client.errors import UnexpectedResponseError
from b2client.errors import wrap_request_error
from b2client.files import FileInfo
from b2client.interfaces import IClient
from urllib.parse import quote
from zope.interface import implementer

import httpx
import logging


logger = logging.getLogger(__name__)

DEFAULT_AUTH_URL = "https://api.backblazeb2.com"
API_PATH = "/b2api/v1/"

_AUTH_FIELDS = ("accountId", "authorizationToken", "apiUrl", "downloadUrl")


def _http_client(connect_timeout, read_timeout):
    return httpx.Client(timeout=httpx.Timeout(read_timeout, connect=connect_timeout))


def _decode_json(response, operation):
    try:
        return response.json()
    except ValueError as e:
        raise UnexpectedResponseError(
            f"failed to decode {operation} answer: {e}",
            status=response.status_code,
            operation=operation,
        ) from e


@implementer(IClient)
class Client:
    """Authenticated B2 API client.

    Safe for concurrent use; reuse it to benefit from connection reuse.
    Use :meth:`authorize` to obtain one.
    """

    def __init__(
        self,
        account_id,
        authorization_token,
        api_url,
        download_url,
        http_client=None,
        connect_timeout=60,
        read_timeout=60,
    ):
        self.account_id = account_id
        self.authorization_token = authorization_token
        self.api_url = api_url.rstrip("/")
        self.download_url = download_url.rstrip("/")
        self._owns_http = http_client is None
        self.http = http_client or _http_client(connect_timeout, read_timeout)

    @classmethod
    def authorize(
        cls,
        account_id,
        application_key,
        http_client=None,
        auth_url=DEFAULT_AUTH_URL,
        connect_timeout=60,
        read_timeout=60,
    ):
        """Call b2_authorize_account and return an authenticated Client."""
        if auth_url.startswith("http://"):
            logger.warning(
                "B2 authorization URL is not HTTPS, credentials are sent in cleartext"
            )
        http = http_client or _http_client(connect_timeout, read_timeout)
        try:
            try:
                response = http.get(
                    auth_url.rstrip("/") + API_PATH + "b2_authorize_account",
                    auth=(account_id, application_key),
                )
            except httpx.RequestError as e:
                wrap_request_error(e, "b2_authorize_account")
            if response.status_code != 200:
                raise B2Error.from_response(response, "b2_authorize_account")
            data = _decode_json(response, "b2_authorize_account")
            if not isinstance(data, dict):
                raise UnexpectedResponseError(
                    "b2_authorize_account answer is not an object",
                    status=response.status_code,
                    operation="b2_authorize_account",
                )
            for key in _AUTH_FIELDS:
                if not data.get(key):
                    raise UnexpectedResponseError(
                        f"b2_authorize_account answer missing {key}",
                        status=response.status_code,
                        operation="b2_authorize_account",
                    )
        except BaseException:
            if http_client is None:
                http.close()
            raise

        client = cls(
            data["accountId"],
            data["authorizationToken"],
            data["apiUrl"],
            data["downloadUrl"],
            http_client=http,
        )
        client._owns_http = http_client is None
        return client

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        """Close the HTTP client if this Client created it."""
        if self._owns_http:
            self.http.close()

    def post(self, endpoint, params=None):
        body = dict(params or {})
        body["accountId"] = self.account_id
        try:
            response = self.http.post(
                self.api_url + API_PATH + endpoint,
                json=body,
                headers={"Authorization": self.authorization_token},
            )
        except httpx.RequestError as e:
            wrap_request_error(e, endpoint)
        if response.status_code != 200:
            raise B2Error.from_response(response, endpoint)
        return _decode_json(response, endpoint)

    # -- Buckets --

    def bucket_by_id(self, bucket_id):
        """Return a Bucket bound to this client. Performs no network call."""
        return Bucket(self, bucket_id)

    def buckets(self):
        """Return a mapping of bucket names to Bucket objects."""
        data = self.post("b2_list_buckets")
        return {
            b["bucketName"]: Bucket(self, b["bucketId"], b["bucketName"])
            for b in data.get("buckets") or []
        }

    def create_bucket(self, name, all_public=False):
        """Create a bucket. Files in public buckets are readable by anybody."""
        data = self.post(
            "b2_create_bucket",
            {
                "bucketName": name,
                "bucketType": "allPublic" if all_public else "allPrivate",
            },
        )
        return Bucket(self, data["bucketId"], data.get("bucketName", name))

    # -- Files --

    def delete_file(self, file_id, name):
        """Delete a single file version."""
        self.post("b2_delete_file_version", {"fileId": file_id, "fileName": name})

    def get_file_info(self, file_id):
        """Return the FileInfo of any file version or hide action."""
        return FileInfo.from_api(self.post("b2_get_file_info", {"fileId": file_id}))

    def download_file_by_id(self, file_id):
        return self._download(
            self.download_url + API_PATH + "b2_download_file_by_id",
            "b2_download_file_by_id",
            params={"fileId": file_id},
        )

    def download_file_by_name(self, bucket_name, name):
        url = f"{self.download_url}/file/{quote(bucket_name, safe='')}/{quote(name)}"
        return self._download(url, "b2_download_file_by_name")

    def _download(self, url, operation, params=None):
        request = self.http.build_request(
            "GET",
            url,
            params=params,
            headers={"Authorization": self.authorization_token},
        )
        try:
            response = self.http.send(request, stream=True)
        except httpx.RequestError as e:
            wrap_request_error(e, operation)
        if response.status_code != 200:
            try:
                response.read()
            except httpx.RequestError as e:
                wrap_request_error(e, operation)
            finally:
                response.close()
            raise B2Error.from_response(response, operation)
        return Download(response)
