"""Mail description consumed by the SMTP senders."""

import copy
from dataclasses import dataclass, field
from email.generator import BytesGenerator
from email.message import Message
from email.policy import SMTP
from email.utils import getaddresses
from typing import BinaryIO, List, Optional, Protocol, Sequence, runtime_checkable

from relaymail.core.email.smtp.auth import Credential


@runtime_checkable
class MailCapability(Protocol):
    """What a sender needs to know about one email."""

    def to_addrs(self) -> Sequence[str]:
        """Addresses for RCPT TO, in order."""
        ...

    def from_addr(self) -> str:
        """Address for MAIL FROM."""
        ...

    def auth(self) -> Optional[Credential]:
        """Credential to authenticate with, or None to skip AUTH."""
        ...

    def build_mime(self, sink: BinaryIO) -> None:
        """Write the complete MIME message to ``sink``.

        The sender buffers ``sink``; implementations may write in small pieces.
        """
        ...


@dataclass
class MessageMail:
    """MailCapability backed by an ``email.message`` object."""

    message: Message
    recipients: List[str]
    sender: str
    credential: Optional[Credential] = field(default=None, repr=False)

    @classmethod
    def from_message(
        cls, message: Message, credential: Optional[Credential] = None
    ) -> "MessageMail":
        """Take the envelope from the message headers.

        Recipients come from To, Cc and Bcc in that order with duplicates
        removed; the sender is Sender if present, otherwise From.
        """
        recipients: List[str] = []
        for header in ("To", "Cc", "Bcc"):
            for _, address in getaddresses(message.get_all(header, [])):
                if address and address not in recipients:
                    recipients.append(address)

        sender_header = message.get("Sender") or message.get("From") or ""
        senders = [address for _, address in getaddresses([str(sender_header)]) if address]

        return cls(
            message=message,
            recipients=recipients,
            sender=senders[0] if senders else "",
            credential=credential,
        )

    def to_addrs(self) -> Sequence[str]:
        return list(self.recipients)

    def from_addr(self) -> str:
        return self.sender

    def auth(self) -> Optional[Credential]:
        return self.credential

    def build_mime(self, sink: BinaryIO) -> None:
        message = self.message
        if "Bcc" in message or "Resent-Bcc" in message:
            message = _copy_without_bcc(message)
        BytesGenerator(sink, mangle_from_=False, policy=SMTP).flatten(message)


def _copy_without_bcc(message: Message) -> Message:
    # Message.__delitem__ rebinds the header list, so the original keeps its Bcc
    clone = copy.copy(message)
    del clone["Bcc"]
    del clone["Resent-Bcc"]
    return clone
