"""Centralized path definitions for relaymail.

Single source of truth for the locations relaymail reads from or writes to.
"""

from pathlib import Path

# Base application directory
RELAYMAIL_DIR = Path.home() / ".relaymail"

# Specific files
CONFIG_PATH = RELAYMAIL_DIR / "config.json"
