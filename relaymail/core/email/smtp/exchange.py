"""One SMTP conversation over an already connected socket.

``SMTPExchange.run`` drives the whole command sequence:

    greeting -> EHLO -> [STARTTLS -> EHLO] -> [AUTH] -> MAIL FROM
    -> RCPT TO (each recipient) -> DATA -> body -> "." -> QUIT

Every step either succeeds or raises the matching ``RelayMailError``
subclass, which ends the conversation. QUIT is always attempted on the way
out and its outcome is dropped.
"""

import base64
import io
import smtplib
import socket
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator

from relaymail.utils.errors import (
    AuthenticationError,
    BodyTransmissionError,
    EnvelopeError,
    RecipientRejectedError,
    SenderRejectedError,
    SMTPConnectionError,
    TeardownError,
    TLSUpgradeError,
)
from relaymail.utils.logging import get_logger

from .auth import Credential, ServerInfo
from .constants import (
    DATA_BUFFER_SIZE,
    DEFAULT_LOCAL_HOSTNAME,
    GMAIL_RELAY_PREFIX,
    MAX_AUTH_CHALLENGES,
    SMTPResponse,
    Timeouts,
)
from .tls import TLSConfig

if TYPE_CHECKING:
    from relaymail.core.models.mail import MailCapability

CR, LF, DOT = 0x0D, 0x0A, 0x2E

# DataSession line states
_BEGIN_LINE, _CR_SEEN, _IN_LINE = range(3)

_END_OF_DATA = {
    _BEGIN_LINE: b".\r\n",
    _CR_SEEN: b"\n.\r\n",
    _IN_LINE: b"\r\n.\r\n",
}


def _reply_details(error: Exception) -> dict:
    """Pull the server reply out of an smtplib exception, if it has one."""
    if isinstance(error, smtplib.SMTPResponseException):
        message = error.smtp_error
        if isinstance(message, bytes):
            message = message.decode("utf-8", "replace")
        return {"smtp_code": error.smtp_code, "smtp_message": message}
    return {"error": str(error)}


class _AttachedSMTP(smtplib.SMTP):
    """smtplib client bound to a socket someone else connected."""

    def __init__(
        self, conn: socket.socket, server_hostname: str, local_hostname: str
    ):
        super().__init__(local_hostname=local_hostname)
        # starttls() hands _host to wrap_socket() as server_hostname
        self._host = server_hostname
        self.sock = conn

    def auth(self, mechanism, authobject, *, initial_response_ok=True):
        """SMTP.auth with responses encoded as UTF-8 instead of ASCII."""

        mechanism = mechanism.upper()
        initial = authobject() if initial_response_ok else None
        if initial is not None:
            code, reply = self.docmd("AUTH", f"{mechanism} {_b64(initial)}")
        else:
            code, reply = self.docmd("AUTH", mechanism)

        rounds = 0
        while code == 334:
            rounds += 1
            if rounds > MAX_AUTH_CHALLENGES:
                raise smtplib.SMTPAuthenticationError(code, reply)
            code, reply = self.docmd(_b64(authobject(base64.decodebytes(reply))))

        if code in (235, 503):
            return code, reply
        raise smtplib.SMTPAuthenticationError(code, reply)


def _b64(response: str) -> str:
    return base64.b64encode(response.encode("utf-8")).decode("ascii")


class DataSession(io.RawIOBase):
    """Raw writable stream for the DATA phase.

    Bytes are dot-stuffed and bare LFs become CRLF on the way to the
    socket. ``close()`` sends the end-of-data marker and checks the reply;
    ``abandon()`` drops the connection instead, so a half-written message is
    never submitted and no later command lands inside the message text.
    """

    def __init__(self, client: smtplib.SMTP):
        super().__init__()
        self._client = client
        self._state = _BEGIN_LINE

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("write to closed DATA session")
        self._client.send(self._stuff(bytes(data)))
        return len(data)

    def _stuff(self, data: bytes) -> bytes:
        out = bytearray()
        state = self._state

        for byte in data:
            if state == _BEGIN_LINE and byte == DOT:
                out.append(DOT)
            if byte == LF:
                if state != _CR_SEEN:
                    out.append(CR)
                state = _BEGIN_LINE
            elif byte == CR:
                state = _CR_SEEN
            else:
                state = _IN_LINE
            out.append(byte)

        self._state = state
        return bytes(out)

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._client.send(_END_OF_DATA[self._state])
            code, message = self._client.getreply()
        finally:
            super().close()

        if code != SMTPResponse.OK:
            raise smtplib.SMTPDataError(code, message)

    def abandon(self) -> None:
        super().close()
        # The server stays in DATA mode until "." arrives
        self._client.close()


@dataclass
class SMTPExchange:
    """Performs the SMTP conversation needed to send ``mail`` over ``conn``.

    ``server_name`` must be the bare hostname (or IP address) of the remote
    end, never ``host:port``: it is the TLS identity fallback and what a
    credential's plaintext policy is checked against.
    """

    mail: "MailCapability"
    conn: socket.socket
    server_name: str
    try_tls_upgrade: bool
    tls_config: TLSConfig
    local_hostname: str = DEFAULT_LOCAL_HOSTNAME
    tls_established: bool = False
    log: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self.log = get_logger(__name__, server=self.server_name)

    def run(self) -> None:
        """Send the message.

        Raises:
            SMTPConnectionError: Greeting or EHLO/HELO failed
            TLSUpgradeError: STARTTLS was advertised but the upgrade failed
            AuthenticationError: The credential was refused
            EnvelopeError: MAIL FROM or a RCPT TO was rejected
            BodyTransmissionError: The DATA phase failed
        """
        tls = self.tls_established

        with self._session() as client:
            self._hello(client)

            if self.try_tls_upgrade:
                tls = self._start_tls(client) or tls

            credential = self.mail.auth()
            if credential is not None:
                self._authenticate(client, credential, tls)

            self._envelope(client)
            self._data(client)

        self.log.info(f"Message accepted by {self.server_name}")

    def _identity(self) -> str:
        """EHLO argument, including the Google relay override."""

        # https://support.google.com/a/answer/2956491
        if self.server_name.startswith(GMAIL_RELAY_PREFIX):
            parts = self.mail.from_addr().split("@")
            if len(parts) > 1:
                return parts[1]
        return self.local_hostname

    @contextmanager
    def _session(self) -> Iterator[smtplib.SMTP]:
        """Yield a client that has received the greeting; QUIT on exit."""

        client = _AttachedSMTP(
            self.conn,
            server_hostname=self.tls_config.server_name or self.server_name,
            local_hostname=self._identity(),
        )

        try:
            self._greeting(client)
            yield client
        finally:
            with suppress(TeardownError):
                self._quit(client)

    def _greeting(self, client: smtplib.SMTP) -> None:
        try:
            code, message = client.getreply()
        except (smtplib.SMTPException, OSError) as e:
            raise SMTPConnectionError(
                f"No greeting from {self.server_name}",
                details={"server": self.server_name, **_reply_details(e)},
            ) from e

        if code != SMTPResponse.SERVICE_READY:
            raise SMTPConnectionError(
                f"Unexpected greeting from {self.server_name}",
                details={
                    "server": self.server_name,
                    "smtp_code": code,
                    "smtp_message": message.decode("utf-8", "replace"),
                },
            )

    def _hello(self, client: smtplib.SMTP) -> None:
        try:
            client.ehlo_or_helo_if_needed()
        except (smtplib.SMTPException, OSError) as e:
            raise SMTPConnectionError(
                f"EHLO/HELO rejected by {self.server_name}",
                details={"server": self.server_name, **_reply_details(e)},
            ) from e

    def _start_tls(self, client: smtplib.SMTP) -> bool:
        """Upgrade the session if STARTTLS is offered. Returns True if it was."""

        if not client.has_extn("starttls"):
            self.log.warning(
                f"{self.server_name} does not offer STARTTLS, continuing unencrypted"
            )
            return False

        try:
            client.starttls(context=self.tls_config.create_ssl_context())
            # Capabilities must be fetched again over the encrypted channel
            client.ehlo_or_helo_if_needed()
        except (smtplib.SMTPException, OSError, ValueError) as e:
            raise TLSUpgradeError(
                f"STARTTLS with {self.server_name} failed",
                details={"server": self.server_name, **_reply_details(e)},
            ) from e

        self.log.debug(f"STARTTLS negotiated with {self.server_name}")
        return True

    def _authenticate(
        self, client: smtplib.SMTP, credential: Credential, tls: bool
    ) -> None:
        server = ServerInfo(
            name=self.server_name,
            tls=tls,
            mechanisms=tuple(client.esmtp_features.get("auth", "").upper().split()),
        )
        credential.check(server)

        try:
            client.auth(credential.mechanism, credential)
        except (smtplib.SMTPException, OSError, UnicodeError) as e:
            raise AuthenticationError(
                f"AUTH {credential.mechanism} rejected by {self.server_name}",
                details={"mechanism": credential.mechanism, **_reply_details(e)},
            ) from e

        self.log.debug(f"Authenticated with {self.server_name} using {credential.mechanism}")

    def _envelope(self, client: smtplib.SMTP) -> None:
        sender = self.mail.from_addr()
        recipients = list(self.mail.to_addrs())
        if not recipients:
            raise EnvelopeError("Message has no recipients")

        options = []
        if client.has_extn("8bitmime"):
            options.append("BODY=8BITMIME")
        if client.has_extn("smtputf8"):
            options.append("SMTPUTF8")

        try:
            code, message = client.mail(sender, options)
        except (smtplib.SMTPException, OSError, UnicodeError) as e:
            raise SenderRejectedError(
                details={"sender": sender, **_reply_details(e)}
            ) from e
        if code != SMTPResponse.OK:
            raise SenderRejectedError(
                details={
                    "sender": sender,
                    "smtp_code": code,
                    "smtp_message": message.decode("utf-8", "replace"),
                },
            )

        for recipient in recipients:
            try:
                code, message = client.rcpt(recipient)
            except (smtplib.SMTPException, OSError, UnicodeError) as e:
                raise RecipientRejectedError(
                    details={"recipient": recipient, **_reply_details(e)}
                ) from e
            if code not in (SMTPResponse.OK, SMTPResponse.USER_NOT_LOCAL):
                raise RecipientRejectedError(
                    details={
                        "recipient": recipient,
                        "smtp_code": code,
                        "smtp_message": message.decode("utf-8", "replace"),
                    },
                )

        self.log.debug(f"Envelope accepted for {len(recipients)} recipient(s)")

    def _data(self, client: smtplib.SMTP) -> None:
        try:
            code, message = client.docmd("data")
        except (smtplib.SMTPException, OSError) as e:
            raise BodyTransmissionError(details=_reply_details(e)) from e
        if code != SMTPResponse.START_MAIL:
            raise BodyTransmissionError(
                "Server refused to start DATA",
                details={
                    "smtp_code": code,
                    "smtp_message": message.decode("utf-8", "replace"),
                },
            )

        session = DataSession(client)
        try:
            sink = io.BufferedWriter(session, buffer_size=DATA_BUFFER_SIZE)
            self.mail.build_mime(sink)
            sink.flush()
        except Exception as e:
            session.abandon()
            raise BodyTransmissionError(
                "Failed to write message body", details=_reply_details(e)
            ) from e

        try:
            session.close()
        except (smtplib.SMTPException, OSError) as e:
            raise BodyTransmissionError(
                "Server did not accept the message", details=_reply_details(e)
            ) from e

    def _quit(self, client: smtplib.SMTP) -> None:
        try:
            if client.sock is not None:
                current = client.sock.gettimeout()
                if current is None or current > Timeouts.SMTP_QUIT:
                    client.sock.settimeout(Timeouts.SMTP_QUIT)
            client.quit()
        except (smtplib.SMTPException, OSError) as e:
            raise TeardownError(details=_reply_details(e)) from e
