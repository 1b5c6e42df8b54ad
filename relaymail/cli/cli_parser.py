"""Argument parser configuration for the relaymail CLI"""

import argparse
from pathlib import Path


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
    """Add arguments that override the configured SMTP server."""

    server_group = parser.add_argument_group("server", "Override configured SMTP settings")

    server_group.add_argument(
        "--server",
        metavar="HOST:PORT",
        help="SMTP server address, e.g. smtp.example.com:587"
    )
    server_group.add_argument(
        "--implicit-tls",
        action="store_true",
        default=None,
        help="Start TLS immediately instead of upgrading with STARTTLS"
    )
    server_group.add_argument(
        "--timeout",
        type=float,
        help="Socket timeout in seconds"
    )


def setup_argument_parser() -> argparse.ArgumentParser:
    """Build the top-level parser with its subcommands."""

    parser = argparse.ArgumentParser(
        prog="relaymail",
        description="Send an email over SMTP, upgrading with STARTTLS when offered"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.json (default: ~/.relaymail/config.json)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    send_parser = subparsers.add_parser(
        "send",
        help="Send an RFC 5322 message file",
        description="Send a .eml file; recipients are taken from To, Cc and Bcc"
    )
    send_parser.add_argument("message", type=Path, help="Message file to send")
    add_server_arguments(send_parser)

    return parser
