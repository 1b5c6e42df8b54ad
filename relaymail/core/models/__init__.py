"""Mail models shared by the senders."""

from .mail import MailCapability, MessageMail

__all__ = ["MailCapability", "MessageMail"]
