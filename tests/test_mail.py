"""
Tests for the EmailMessage-backed mail adapter
"""
import io
from email.message import EmailMessage

from relaymail.core.email.smtp.auth import PlainCredential
from relaymail.core.models import MailCapability, MessageMail


def make_message(**headers) -> EmailMessage:
    message = EmailMessage()
    for name, value in headers.items():
        message[name.replace("_", "-")] = value
    message.set_content("Hello\n.hidden line\n")
    return message


class TestFromMessage:
    """Tests for envelope extraction"""

    def test_recipients_in_header_order(self):
        message = make_message(
            From="Me <me@x.com>",
            To="A <a@x.com>, b@x.com",
            Cc="c@x.com",
            Bcc="d@x.com, a@x.com",
        )
        mail = MessageMail.from_message(message)

        assert mail.to_addrs() == ["a@x.com", "b@x.com", "c@x.com", "d@x.com"]
        assert mail.from_addr() == "me@x.com"

    def test_sender_header_wins(self):
        message = make_message(From="me@x.com", Sender="bot@x.com", To="a@x.com")
        assert MessageMail.from_message(message).from_addr() == "bot@x.com"

    def test_no_from_header(self):
        assert MessageMail.from_message(make_message(To="a@x.com")).from_addr() == ""

    def test_credential_optional(self):
        message = make_message(From="me@x.com", To="a@x.com")
        credential = PlainCredential("me", "pw")

        assert MessageMail.from_message(message).auth() is None
        assert MessageMail.from_message(message, credential).auth() is credential

    def test_satisfies_protocol(self):
        mail = MessageMail.from_message(make_message(From="me@x.com", To="a@x.com"))
        assert isinstance(mail, MailCapability)


class TestBuildMime:
    """Tests for serialisation"""

    def test_bcc_not_written(self):
        message = make_message(From="me@x.com", To="a@x.com", Bcc="secret@x.com")
        sink = io.BytesIO()

        MessageMail.from_message(message).build_mime(sink)

        output = sink.getvalue()
        assert b"secret@x.com" not in output
        assert b"To: a@x.com\r\n" in output
        assert message["Bcc"] == "secret@x.com"

    def test_crlf_line_endings(self):
        sink = io.BytesIO()
        MessageMail.from_message(make_message(From="me@x.com", To="a@x.com")).build_mime(sink)

        assert b"Hello\r\n.hidden line\r\n" in sink.getvalue()
