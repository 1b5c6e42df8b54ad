"""SMTP AUTH credentials.

A credential is handed to ``smtplib.SMTP.auth`` as its ``authobject``:
it is called once without a challenge for the initial response, then once
per ``334`` challenge the server sends back.
"""

import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

from relaymail.utils.errors import AuthenticationError

LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass(frozen=True)
class ServerInfo:
    """What a credential may inspect before sending anything."""

    name: str
    tls: bool
    mechanisms: Tuple[str, ...] = ()


class Credential(ABC):
    """Base class for AUTH mechanisms."""

    mechanism: str = ""

    def check(self, server: ServerInfo) -> None:
        """Refuse to authenticate against ``server``.

        A server that lists AUTH mechanisms must list this one. One that
        lists none is still tried and answers for itself.

        Raises:
            AuthenticationError: If sending this credential would be unsafe
                or the server does not offer the mechanism
        """
        if server.mechanisms and self.mechanism not in server.mechanisms:
            raise AuthenticationError(
                f"Server does not offer AUTH {self.mechanism}",
                details={"server": server.name, "offered": list(server.mechanisms)},
            )

    @abstractmethod
    def respond(self, challenge: Optional[bytes]) -> Optional[str]:
        """Answer a decoded server challenge, or give the initial response."""

    def __call__(self, challenge: Optional[bytes] = None) -> Optional[str]:
        return self.respond(challenge)


@dataclass
class PlainCredential(Credential):
    """AUTH PLAIN (RFC 4616).

    Only sent over TLS, or in the clear to a loopback server. When ``host``
    is set it must equal the server name the exchange was started with.
    """

    username: str
    password: str = field(repr=False)
    host: str = ""
    identity: str = ""

    mechanism = "PLAIN"

    def check(self, server: ServerInfo) -> None:
        if not server.tls and server.name not in LOCAL_HOSTS:
            raise AuthenticationError(
                "Refusing to send credentials over an unencrypted connection",
                details={"server": server.name},
            )
        if self.host and server.name != self.host:
            raise AuthenticationError(
                "Server name does not match the credential host",
                details={"server": server.name, "expected": self.host},
            )
        super().check(server)

    def respond(self, challenge: Optional[bytes]) -> Optional[str]:
        if challenge:
            # Everything was sent in the initial response
            raise AuthenticationError("Unexpected challenge from server")
        return f"{self.identity}\0{self.username}\0{self.password}"


@dataclass
class CramMD5Credential(Credential):
    """AUTH CRAM-MD5 (RFC 2195). The password never crosses the wire."""

    username: str
    secret: str = field(repr=False)

    mechanism = "CRAM-MD5"

    def respond(self, challenge: Optional[bytes]) -> Optional[str]:
        if challenge is None:
            return None
        digest = hmac.new(self.secret.encode("utf-8"), challenge, "md5").hexdigest()
        return f"{self.username} {digest}"
