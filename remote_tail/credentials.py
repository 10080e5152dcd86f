"""Connection parameters for remote log hosts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Optional, Union

DEFAULT_SSH_PORT = 22


@dataclass(slots=True, frozen=True)
class Endpoint:
    """Registry key for a remote host. Compared verbatim, no DNS lookups."""

    host: str
    port: int = DEFAULT_SSH_PORT

    def __post_init__(self) -> None:
        if not self.host or not self.host.strip():
            raise ValueError("Host cannot be empty.")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError(f"Port must be an integer, got {self.port!r}.")
        if not 0 < self.port < 65536:
            raise ValueError(f"Port out of range: {self.port}")

    def __str__(self) -> str:
        if ":" in self.host and not self.host.startswith("["):
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(slots=True, frozen=True)
class PasswordAuth:
    auth_type: ClassVar[str] = "password"

    password: str = field(repr=False)

    def describe(self) -> str:
        return "password"


@dataclass(slots=True, frozen=True)
class KeyAuth:
    auth_type: ClassVar[str] = "key"

    private_key_path: str
    passphrase: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.private_key_path:
            raise ValueError("Private key path cannot be empty.")

    def describe(self) -> str:
        return f"key {self.private_key_path}"


AuthMethod = Union[PasswordAuth, KeyAuth]


@dataclass(slots=True, frozen=True)
class Credentials:
    """An endpoint, a username and exactly one authentication strategy."""

    endpoint: Endpoint
    username: str
    auth: AuthMethod

    def __post_init__(self) -> None:
        if not self.username or not self.username.strip():
            raise ValueError("Username cannot be empty.")
        if not isinstance(self.auth, (PasswordAuth, KeyAuth)):
            raise ValueError(f"Unsupported authentication method: {type(self.auth).__name__}")

    @property
    def host(self) -> str:
        return self.endpoint.host

    @property
    def port(self) -> int:
        return self.endpoint.port

    def describe(self) -> str:
        """Log-safe summary; never includes secrets."""

        return f"{self.username}@{self.endpoint} ({self.auth.describe()})"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Credentials":
        """Build credentials from the presentation layer's JSON shape.

        Accepts the auth fields either flattened next to ``host`` or nested
        under ``auth_method``, tagged by ``auth_type`` (``password``/``key``).
        """

        auth_data: Mapping[str, Any] = data.get("auth_method") or data
        auth_type = auth_data.get("auth_type", "password")
        auth: AuthMethod
        if auth_type == PasswordAuth.auth_type:
            auth = PasswordAuth(password=str(auth_data.get("password") or ""))
        elif auth_type == KeyAuth.auth_type:
            auth = KeyAuth(
                private_key_path=str(auth_data.get("private_key_path") or ""),
                passphrase=auth_data.get("passphrase") or None,
            )
        else:
            raise ValueError(f"Unknown auth_type: {auth_type!r}")

        port = data.get("port")
        endpoint = Endpoint(
            host=str(data.get("host") or "").strip(),
            port=int(port) if port not in (None, "") else DEFAULT_SSH_PORT,
        )
        return cls(endpoint=endpoint, username=str(data.get("username") or "").strip(), auth=auth)

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialisable form without password or passphrase."""

        payload: Dict[str, Any] = {
            "host": self.endpoint.host,
            "port": self.endpoint.port,
            "username": self.username,
            "auth_type": self.auth.auth_type,
        }
        if isinstance(self.auth, KeyAuth):
            payload["private_key_path"] = self.auth.private_key_path
        return payload
