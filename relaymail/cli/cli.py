"""Main CLI entry point."""

from email import policy
from email.message import Message
from email.parser import BytesParser
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from relaymail.core.email.smtp import build_credential, create_sender
from relaymail.core.models import MessageMail
from relaymail.utils.config_manager import ConfigManager
from relaymail.utils.console import get_console, print_error, print_success
from relaymail.utils.errors import FileSystemError, RelayMailError, format_error_message
from relaymail.utils.logging import get_logger, init_logging

from .cli_parser import setup_argument_parser

logger = get_logger(__name__)


def _read_message(path: Path) -> Message:
    try:
        with open(path, "rb") as f:
            return BytesParser(policy=policy.default).parse(f)
    except OSError as e:
        raise FileSystemError(f"Cannot read message file {path}: {e}") from e


def send_command(args, config_manager: ConfigManager, console: Console) -> int:
    """Send the message file named on the command line.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    smtp_config = config_manager.override_smtp(
        host=args.server,
        implicit_tls=args.implicit_tls,
        timeout=args.timeout,
    )

    message = _read_message(args.message)
    mail = MessageMail.from_message(message, credential=build_credential(smtp_config))
    sender = create_sender(smtp_config)

    logger.info(f"Sending {args.message} via {smtp_config.host}")
    sender.send(mail)

    print_success(
        f"Sent to {len(mail.to_addrs())} recipient(s) via {smtp_config.host}", console
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code
    """
    console = get_console()

    try:
        parser = setup_argument_parser()
        args = parser.parse_args(argv)

        try:
            config_manager = ConfigManager(args.config)
            logging_config = config_manager.config.logging
            init_logging(
                args.log_level or logging_config.log_level,
                console_level=logging_config.console_level,
                log_dir=Path(logging_config.log_dir) if logging_config.log_dir else None,
                max_file_size=logging_config.max_file_size,
                backup_count=logging_config.backup_count,
            )
        except RelayMailError as e:
            print_error(f"Configuration error: {format_error_message(e)}", console)
            return 1

        try:
            return send_command(args, config_manager, console)
        except RelayMailError as e:
            logger.error(f"Send failed: {e.message}", extra={"context": e.to_dict()})
            print_error(f"Error: {format_error_message(e)}", console)
            return 1

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130  # Standard SIGINT exit code
