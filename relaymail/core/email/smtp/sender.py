"""Senders: dial the server, prepare TLS, and run one SMTP exchange."""

import socket
import ssl
from typing import TYPE_CHECKING, Callable, Optional

from relaymail.utils.errors import InvalidConfigError, TLSUpgradeError
from relaymail.utils.logging import log_call

from .auth import CramMD5Credential, Credential, PlainCredential
from .connection import derive_hostname, dial
from .constants import DEFAULT_LOCAL_HOSTNAME
from .exchange import SMTPExchange
from .tls import TLSConfig, build_tls_config

if TYPE_CHECKING:
    from relaymail.core.models.mail import MailCapability
    from relaymail.utils.config_manager import SMTPConfig


Dialer = Callable[[str, Optional[float]], socket.socket]


class StartTLSSender:
    """Connects to an SMTP server, upgrades with STARTTLS when offered, sends.

    The TLS configuration is prepared once here and never touched again, so
    one sender can be shared between threads; each ``send`` owns its socket.
    """

    def __init__(
        self,
        host_and_port: str,
        tls_config: Optional[TLSConfig] = None,
        *,
        local_hostname: str = DEFAULT_LOCAL_HOSTNAME,
        timeout: Optional[float] = None,
        dialer: Dialer = dial,
    ):
        """Initialise the sender.

        Args:
            host_and_port: Server address, e.g. "smtp.example.com:587"
            tls_config: Caller's TLS settings. A deep copy is kept; the
                caller's object is never modified.
            local_hostname: EHLO identity
            timeout: Socket timeout in seconds for the whole conversation
            dialer: Opens the TCP connection
        """
        self.host_and_port = host_and_port
        self.hostname = derive_hostname(host_and_port)
        self.tls_config = build_tls_config(self.hostname, tls_config)
        self.local_hostname = local_hostname
        self.timeout = timeout
        self._dialer = dialer

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.host_and_port!r})"

    def _connect(self) -> socket.socket:
        return self._dialer(self.host_and_port, self.timeout)

    def _exchange(self, mail: "MailCapability", conn: socket.socket) -> SMTPExchange:
        return SMTPExchange(
            mail=mail,
            conn=conn,
            server_name=self.hostname,
            try_tls_upgrade=True,
            tls_config=self.tls_config,
            local_hostname=self.local_hostname,
        )

    @log_call
    def send(self, mail: "MailCapability") -> None:
        """Send ``mail`` in one SMTP session.

        Raises:
            SMTPConnectionError: If the server cannot be reached
            RelayMailError: Whatever the exchange raised first
        """
        conn = self._connect()
        try:
            self._exchange(mail, conn).run()
        finally:
            conn.close()


class ImplicitTLSSender(StartTLSSender):
    """Like StartTLSSender, but TLS starts before the greeting (SMTPS, 465)."""

    def _connect(self) -> socket.socket:
        conn = super()._connect()
        server_hostname = self.tls_config.server_name or self.hostname

        try:
            return self.tls_config.create_ssl_context().wrap_socket(
                conn, server_hostname=server_hostname
            )
        except (ssl.SSLError, OSError, ValueError) as e:
            conn.close()
            raise TLSUpgradeError(
                f"TLS handshake with {self.host_and_port} failed",
                details={"server": server_hostname, "error": str(e)},
            ) from e

    def _exchange(self, mail: "MailCapability", conn: socket.socket) -> SMTPExchange:
        return SMTPExchange(
            mail=mail,
            conn=conn,
            server_name=self.hostname,
            try_tls_upgrade=False,
            tls_config=self.tls_config,
            local_hostname=self.local_hostname,
            tls_established=True,
        )


def create_sender(smtp_config: "SMTPConfig") -> StartTLSSender:
    """Build the sender described by an SMTPConfig."""

    if not smtp_config.host:
        raise InvalidConfigError("smtp.host is not configured")

    sender_class = ImplicitTLSSender if smtp_config.implicit_tls else StartTLSSender
    return sender_class(
        smtp_config.host,
        smtp_config.tls,
        local_hostname=smtp_config.local_hostname,
        timeout=smtp_config.timeout,
    )


def build_credential(smtp_config: "SMTPConfig") -> Optional[Credential]:
    """Credential for the configured account, or None when no username is set."""

    if not smtp_config.username:
        return None

    password = smtp_config.password.get_secret_value()
    if smtp_config.auth_mechanism == "CRAM-MD5":
        return CramMD5Credential(smtp_config.username, password)

    return PlainCredential(
        smtp_config.username, password, host=derive_hostname(smtp_config.host)
    )
