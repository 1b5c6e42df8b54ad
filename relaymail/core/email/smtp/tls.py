"""TLS configuration for the STARTTLS upgrade and implicit TLS."""

import ssl
from typing import Optional

from pydantic import BaseModel, field_validator

from relaymail.utils.logging import get_logger

logger = get_logger(__name__)


class TLSConfig(BaseModel):
    """Identity and policy for an encrypted SMTP session.

    Only ``server_name`` matters for the default configuration; everything
    else falls back to what ``ssl.create_default_context()`` chooses.
    """

    server_name: str = ""
    verify: bool = True
    ca_file: Optional[str] = None
    ca_path: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    minimum_version: Optional[str] = None
    ciphers: Optional[str] = None

    @field_validator("minimum_version")
    @classmethod
    def _known_tls_version(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in ssl.TLSVersion.__members__:
            raise ValueError(f"unknown TLS version: {value}")
        return value

    def create_ssl_context(self) -> ssl.SSLContext:
        """Build an SSLContext from this configuration.

        Raises:
            ssl.SSLError, OSError: If certificates or ciphers cannot be loaded
        """
        context = ssl.create_default_context(cafile=self.ca_file, capath=self.ca_path)

        if not self.verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        if self.cert_file:
            context.load_cert_chain(self.cert_file, self.key_file)

        if self.minimum_version:
            context.minimum_version = ssl.TLSVersion[self.minimum_version]

        if self.ciphers:
            context.set_ciphers(self.ciphers)

        return context


def build_tls_config(hostname: str, supplied: Optional[TLSConfig] = None) -> TLSConfig:
    """Return the TLS configuration a sender should own.

    A supplied configuration is deep-copied so later changes on either side
    never leak across. Without one, the default only pins ``server_name`` to
    ``hostname``.
    """
    if supplied is not None:
        return supplied.model_copy(deep=True)

    logger.debug(f"Using default TLS configuration for {hostname}")
    return TLSConfig(server_name=hostname)
