"""relaymail - send one email over one SMTP session, with STARTTLS."""

__version__ = "0.1.0"
