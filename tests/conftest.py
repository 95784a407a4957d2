from b2client.client import Client
from urllib.parse import quote_plus
from urllib.parse import unquote_plus

import base64
import collections
import hashlib
import httpx
import json
import pytest
import threading


AUTH_URL = "https://auth.fake-b2.test"
API_URL = "https://api.fake-b2.test"
DOWNLOAD_URL = "https://f000.fake-b2.test"
UPLOAD_HOST = "pod-000.fake-b2.test"

ACCOUNT_ID = "acct"
APPLICATION_KEY = "secret"

_BASE_TIMESTAMP = 1_500_000_000_000


def garbled_gzip_response():
    """A 200 answer whose gzip body fails to decode when the client reads it."""
    return httpx.Response(
        200,
        headers={"content-encoding": "gzip"},
        stream=httpx.ByteStream(b"not gzip"),
    )


def _error(status, code, message=""):
    return httpx.Response(
        status, json={"code": code, "message": message or code, "status": status}
    )


class FakeB2:
    """In-memory B2 service for httpx.MockTransport.

    Outcomes queued with inject() are consumed one per call of the named
    operation before it runs normally: exceptions are raised, (status, code)
    tuples become error answers, httpx.Response objects are returned as is.
    """

    def __init__(self):
        self.token = "auth-token-0"
        self.buckets = {}
        self.versions = []
        self.upload_tokens = {}
        self.uploads = []
        self.requests = []
        self.calls = collections.Counter()
        self._injected = collections.defaultdict(collections.deque)
        self._seq = 0
        self._lock = threading.Lock()

    # -- test helpers --

    def inject(self, operation, *outcomes):
        self._injected[operation].extend(outcomes)

    def add_bucket(self, name, bucket_type="allPrivate"):
        with self._lock:
            return self._add_bucket(name, bucket_type)

    def add_file(self, bucket_id, name, data=b"", content_type="text/plain",
                 info=None, action="upload"):
        with self._lock:
            return self._add_version(bucket_id, name, data, content_type, info or {},
                                     action)

    def file_names(self, bucket_id):
        return [v["fileName"] for v in self.versions if v["bucketId"] == bucket_id]

    # -- transport entry point --

    def handler(self, request):
        host = request.url.host
        path = request.url.path
        if host == UPLOAD_HOST:
            return self._dispatch("b2_upload_file", request)
        if host == DOWNLOAD_URL.split("//")[1]:
            if path.startswith("/file/"):
                return self._dispatch("b2_download_file_by_name", request)
            return self._dispatch("b2_download_file_by_id", request)
        operation = path.rsplit("/", 1)[-1]
        return self._dispatch(operation, request)

    def _dispatch(self, operation, request):
        with self._lock:
            self.calls[operation] += 1
            injected = self._injected[operation]
            outcome = injected.popleft() if injected else None
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, tuple):
            return _error(*outcome)
        if isinstance(outcome, httpx.Response):
            return outcome

        if operation == "b2_authorize_account":
            return self._authorize(request)
        if operation == "b2_upload_file":
            return self._upload(request)
        if operation.startswith("b2_download_file"):
            return self._download(operation, request)
        if request.headers.get("authorization") != self.token:
            return _error(401, "bad_auth_token")
        params = json.loads(request.content)
        self.requests.append((operation, params))
        if params.get("accountId") != ACCOUNT_ID:
            return _error(401, "unauthorized")
        method = getattr(self, "_api_" + operation[len("b2_"):], None)
        if method is None:
            return _error(404, "not_found", f"unknown operation {operation}")
        with self._lock:
            return method(params)

    # -- operations --

    def _authorize(self, request):
        expected = base64.b64encode(f"{ACCOUNT_ID}:{APPLICATION_KEY}".encode()).decode()
        if request.headers.get("authorization") != f"Basic {expected}":
            return _error(401, "unauthorized", "invalid application key")
        return httpx.Response(
            200,
            json={
                "accountId": ACCOUNT_ID,
                "authorizationToken": self.token,
                "apiUrl": API_URL,
                "downloadUrl": DOWNLOAD_URL,
                "recommendedPartSize": 100000000,
            },
        )

    def _api_list_buckets(self, params):
        return httpx.Response(
            200,
            json={
                "buckets": [
                    {"bucketId": bucket_id, "bucketName": b["name"],
                     "bucketType": b["type"]}
                    for bucket_id, b in self.buckets.items()
                ]
            },
        )

    def _api_create_bucket(self, params):
        name = params["bucketName"]
        if any(b["name"] == name for b in self.buckets.values()):
            return _error(400, "duplicate_bucket_name")
        bucket_id = self._add_bucket(name, params["bucketType"])
        return httpx.Response(
            200,
            json={"bucketId": bucket_id, "bucketName": name,
                  "bucketType": params["bucketType"], "accountId": ACCOUNT_ID},
        )

    def _api_delete_bucket(self, params):
        bucket = self.buckets.pop(params["bucketId"], None)
        if bucket is None:
            return _error(400, "bad_bucket_id")
        return httpx.Response(200, json={"bucketId": params["bucketId"]})

    def _api_get_upload_url(self, params):
        bucket_id = params["bucketId"]
        if bucket_id not in self.buckets:
            return _error(400, "bad_bucket_id")
        n = len(self.upload_tokens)
        token = f"upload-token-{n}"
        self.upload_tokens[token] = bucket_id
        return httpx.Response(
            200,
            json={
                "bucketId": bucket_id,
                "uploadUrl": f"https://{UPLOAD_HOST}/b2api/v1/b2_upload_file/{bucket_id}/{n}",
                "authorizationToken": token,
            },
        )

    def _api_list_file_names(self, params):
        latest = {}
        for version in self._sorted(params["bucketId"]):
            latest.setdefault(version["fileName"], version)
        visible = [v for v in latest.values() if v["action"] == "upload"]
        start = params.get("startFileName") or ""
        candidates = [v for v in visible if v["fileName"] >= start]
        count = self._page_size(params)
        page, rest = candidates[:count], candidates[count:]
        return httpx.Response(
            200,
            json={
                "files": [self._public(v) for v in page],
                "nextFileName": rest[0]["fileName"] if rest else None,
            },
        )

    def _api_list_file_versions(self, params):
        ordered = self._sorted(params["bucketId"])
        start_name = params.get("startFileName") or ""
        start_id = params.get("startFileId")
        index = len(ordered)
        for i, v in enumerate(ordered):
            if start_id:
                if v["fileName"] == start_name and v["fileId"] == start_id:
                    index = i
                    break
            elif v["fileName"] >= start_name:
                index = i
                break
        count = self._page_size(params)
        page, rest = ordered[index:index + count], ordered[index + count:]
        return httpx.Response(
            200,
            json={
                "files": [self._public(v) for v in page],
                "nextFileName": rest[0]["fileName"] if rest else None,
                "nextFileId": rest[0]["fileId"] if rest else None,
            },
        )

    def _api_get_file_info(self, params):
        version = self._find(params["fileId"])
        if version is None:
            return _error(404, "not_found", "file not present")
        return httpx.Response(200, json=self._public(version))

    def _api_delete_file_version(self, params):
        version = self._find(params["fileId"])
        if version is None or version["fileName"] != params["fileName"]:
            return _error(400, "file_not_present")
        self.versions.remove(version)
        return httpx.Response(
            200, json={"fileId": version["fileId"], "fileName": version["fileName"]}
        )

    def _api_hide_file(self, params):
        version = self._add_version(params["bucketId"], params["fileName"], b"", "",
                                    {}, "hide")
        return httpx.Response(200, json=self._public(version))

    def _upload(self, request):
        token = request.headers.get("authorization")
        with self._lock:
            bucket_id = self.upload_tokens.get(token)
        if bucket_id is None or not request.url.path.startswith(
            f"/b2api/v1/b2_upload_file/{bucket_id}/"
        ):
            return _error(401, "bad_auth_token", "invalid upload token")
        body = request.content
        headers = request.headers
        self.uploads.append({"headers": dict(headers), "body": body, "token": token})
        name = unquote_plus(headers["x-bz-file-name"])
        if int(headers["content-length"]) != len(body):
            return _error(400, "bad_request", "content length mismatch")
        if hashlib.sha1(body).hexdigest() != headers["x-bz-content-sha1"]:
            return _error(400, "bad_request", "Checksum did not match data received")
        if not name or "//" in name or name.startswith("/"):
            return _error(400, "bad_request", f"illegal file name: {name}")
        info = {
            key[len("x-bz-info-"):]: unquote_plus(value)
            for key, value in headers.items()
            if key.startswith("x-bz-info-")
        }
        with self._lock:
            version = self._add_version(bucket_id, name, body,
                                        headers.get("content-type", ""), info,
                                        "upload")
        return httpx.Response(200, json=self._public(version))

    def _download(self, operation, request):
        with self._lock:
            if operation == "b2_download_file_by_id":
                version = self._find(request.url.params.get("fileId"))
            else:
                _, _, bucket_name, name = request.url.path.split("/", 3)
                version = self._latest_by_name(bucket_name, name)
        if version is None or version["action"] != "upload":
            return _error(404, "not_found", "file not present")
        headers = {
            "x-bz-file-id": version["fileId"],
            "x-bz-file-name": quote_plus(version["fileName"]),
            "x-bz-content-sha1": version["contentSha1"],
            "x-bz-upload-timestamp": str(version["uploadTimestamp"]),
            "content-type": version["contentType"],
        }
        for key, value in version["fileInfo"].items():
            headers[f"x-bz-info-{key}"] = quote_plus(value)
        return httpx.Response(200, headers=headers, content=version["data"])

    # -- internals, called with the lock held --

    def _add_bucket(self, name, bucket_type):
        bucket_id = f"bucket{len(self.buckets):04d}"
        self.buckets[bucket_id] = {"name": name, "type": bucket_type}
        return bucket_id

    def _add_version(self, bucket_id, name, data, content_type, info, action):
        self._seq += 1
        version = {
            "fileId": f"4_z{bucket_id}_f{self._seq:06d}",
            "fileName": name,
            "bucketId": bucket_id,
            "accountId": ACCOUNT_ID,
            "contentLength": len(data),
            "contentSha1": hashlib.sha1(data).hexdigest() if action == "upload"
            else "none",
            "contentType": content_type,
            "fileInfo": dict(info),
            "uploadTimestamp": _BASE_TIMESTAMP + self._seq,
            "action": action,
            "data": data,
            "seq": self._seq,
        }
        self.versions.append(version)
        return version

    def _sorted(self, bucket_id):
        return sorted(
            (v for v in self.versions if v["bucketId"] == bucket_id),
            key=lambda v: (v["fileName"], -v["seq"]),
        )

    def _find(self, file_id):
        for version in self.versions:
            if version["fileId"] == file_id:
                return version
        return None

    def _latest_by_name(self, bucket_name, name):
        bucket_ids = {i for i, b in self.buckets.items() if b["name"] == bucket_name}
        matches = [
            v for v in self.versions if v["bucketId"] in bucket_ids and v["fileName"] == name
        ]
        return max(matches, key=lambda v: v["seq"]) if matches else None

    @staticmethod
    def _page_size(params):
        count = int(params.get("maxFileCount") or 0)
        return count if count > 0 else 100

    @staticmethod
    def _public(version):
        return {k: v for k, v in version.items() if k not in ("data", "seq")}


@pytest.fixture
def fake_b2():
    return FakeB2()


@pytest.fixture
def http_client(fake_b2):
    with httpx.Client(transport=httpx.MockTransport(fake_b2.handler)) as client:
        yield client


@pytest.fixture
def client(http_client):
    return Client.authorize(
        ACCOUNT_ID, APPLICATION_KEY, http_client=http_client, auth_url=AUTH_URL
    )


@pytest.fixture
def bucket(client):
    return client.create_bucket("test-bucket")
