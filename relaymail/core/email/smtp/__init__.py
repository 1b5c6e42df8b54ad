"""SMTP sending for a single message.

Components:
- StartTLSSender / ImplicitTLSSender: dial, prepare TLS, run one exchange
- SMTPExchange: the command sequence over a connected socket
- TLSConfig / build_tls_config: TLS identity and policy
- PlainCredential / CramMD5Credential: AUTH mechanisms

Usage
-----

    >>> from email.message import EmailMessage
    >>> from relaymail.core.email.smtp import StartTLSSender
    >>> from relaymail.core.models import MessageMail
    >>>
    >>> msg = EmailMessage()
    >>> msg["From"] = "me@example.com"
    >>> msg["To"] = "you@example.com"
    >>> msg["Subject"] = "Hello"
    >>> msg.set_content("Hi there")
    >>>
    >>> StartTLSSender("smtp.example.com:587").send(MessageMail.from_message(msg))
"""

from .auth import CramMD5Credential, Credential, PlainCredential, ServerInfo
from .connection import derive_hostname, dial, split_host_port
from .exchange import DataSession, SMTPExchange
from .sender import ImplicitTLSSender, StartTLSSender, build_credential, create_sender
from .tls import TLSConfig, build_tls_config

__all__ = [
    "CramMD5Credential",
    "Credential",
    "DataSession",
    "ImplicitTLSSender",
    "PlainCredential",
    "SMTPExchange",
    "ServerInfo",
    "StartTLSSender",
    "TLSConfig",
    "build_credential",
    "build_tls_config",
    "create_sender",
    "derive_hostname",
    "dial",
    "split_host_port",
]
