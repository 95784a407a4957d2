from b2client.client import Client
from b2client.client import DEFAULT_AUTH_URL
from dataclasses import dataclass

import os


def _required(environ, name):
    value = environ.get(name, "").strip()
    if not value:
        raise ValueError(f"{name} must be set")
    return value


@dataclass
class Settings:
    """Connection settings, usually read from B2_* environment variables."""

    account_id: str
    application_key: str
    auth_url: str = DEFAULT_AUTH_URL
    connect_timeout: float = 60
    read_timeout: float = 60

    def __post_init__(self):
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("B2 timeouts must be greater than zero")

    @classmethod
    def from_environment(cls, environ=None):
        environ = os.environ if environ is None else environ
        return cls(
            account_id=_required(environ, "B2_ACCOUNT_ID"),
            application_key=_required(environ, "B2_APPLICATION_KEY"),
            auth_url=environ.get("B2_AUTH_URL") or cls.auth_url,
            connect_timeout=float(
                environ.get("B2_CONNECT_TIMEOUT", cls.connect_timeout)
            ),
            read_timeout=float(environ.get("B2_READ_TIMEOUT", cls.read_timeout)),
        )

    def open(self, http_client=None):
        """Authorize against B2 and return a Client."""
        return Client.authorize(
            self.account_id,
            self.application_key,
            http_client=http_client,
            auth_url=self.auth_url,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
        )
