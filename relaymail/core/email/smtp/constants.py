"""SMTP constants and configuration values."""


class SMTPResponse:
    """SMTP reply codes the exchange checks for."""

    # 2xx Success
    SERVICE_READY = 220  # Greeting, and go-ahead for STARTTLS
    OK = 250  # Requested mail action okay, completed
    USER_NOT_LOCAL = 251  # User not local; will forward

    # 3xx Intermediate
    START_MAIL = 354  # Start mail input; end with <CRLF>.<CRLF>


class Timeouts:
    """Timeout values for SMTP operations (in seconds)."""

    SMTP_CONNECT = 30.0  # Default socket timeout for the whole conversation
    SMTP_QUIT = 5.0  # Upper bound on waiting for the QUIT reply


# Relays whose EHLO identity must be the sender's domain rather than our host
# name (Google Workspace SMTP relay).
GMAIL_RELAY_PREFIX = "smtp-relay.gmail.com"

DEFAULT_LOCAL_HOSTNAME = "localhost"

# 334 rounds accepted before an AUTH exchange is given up
MAX_AUTH_CHALLENGES = 5

# Write buffer wrapped around the DATA stream
DATA_BUFFER_SIZE = 4096
