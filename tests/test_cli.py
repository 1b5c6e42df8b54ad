"""
Tests for the relaymail command line
"""
import json
import logging
from unittest.mock import patch

import pytest

from relaymail.cli.cli import main
from relaymail.cli.cli_parser import setup_argument_parser
from relaymail.core.email.smtp.auth import PlainCredential
from relaymail.utils.errors import RecipientRejectedError


MESSAGE = (
    b"From: me@x.com\r\n"
    b"To: a@x.com\r\n"
    b"Bcc: b@x.com\r\n"
    b"Subject: hi\r\n"
    b"\r\n"
    b"hello\r\n"
)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger("relaymail").handlers.clear()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "smtp": {"host": "smtp.example.com:587", "username": "me", "password": "pw"},
    }))
    return path


@pytest.fixture
def message_file(tmp_path):
    path = tmp_path / "message.eml"
    path.write_bytes(MESSAGE)
    return path


class TestArgumentParser:
    """Tests for argument parsing"""

    def test_send_arguments(self, tmp_path):
        args = setup_argument_parser().parse_args(
            ["--config", "c.json", "send", "m.eml", "--server", "h:25", "--implicit-tls"]
        )

        assert args.command == "send"
        assert str(args.message) == "m.eml"
        assert args.server == "h:25"
        assert args.implicit_tls is True

    def test_implicit_tls_defaults_to_none(self):
        args = setup_argument_parser().parse_args(["send", "m.eml"])
        assert args.implicit_tls is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            setup_argument_parser().parse_args([])


class TestSendCommand:
    """Tests for `relaymail send`"""

    @patch("relaymail.cli.cli.create_sender")
    def test_send_success(self, mock_create, config_file, message_file):
        code = main(["--config", str(config_file), "send", str(message_file)])

        assert code == 0
        smtp_config = mock_create.call_args.args[0]
        assert smtp_config.host == "smtp.example.com:587"

        mail = mock_create.return_value.send.call_args.args[0]
        assert mail.to_addrs() == ["a@x.com", "b@x.com"]
        assert mail.from_addr() == "me@x.com"
        assert isinstance(mail.auth(), PlainCredential)

    @patch("relaymail.cli.cli.create_sender")
    def test_server_override(self, mock_create, config_file, message_file):
        main(["--config", str(config_file), "send", str(message_file), "--server", "other.example.com:2525"])

        assert mock_create.call_args.args[0].host == "other.example.com:2525"

    @patch("relaymail.cli.cli.create_sender")
    def test_send_failure_exit_code(self, mock_create, config_file, message_file):
        mock_create.return_value.send.side_effect = RecipientRejectedError(
            details={"recipient": "a@x.com", "smtp_code": 550}
        )

        assert main(["--config", str(config_file), "send", str(message_file)]) == 1

    def test_missing_message_file(self, config_file, tmp_path):
        code = main(["--config", str(config_file), "send", str(tmp_path / "nope.eml")])
        assert code == 1

    def test_invalid_config(self, tmp_path, message_file):
        path = tmp_path / "config.json"
        path.write_text("{broken")

        assert main(["--config", str(path), "send", str(message_file)]) == 1

    @patch("relaymail.cli.cli.create_sender")
    def test_interrupt(self, mock_create, config_file, message_file):
        mock_create.return_value.send.side_effect = KeyboardInterrupt

        assert main(["--config", str(config_file), "send", str(message_file)]) == 130
