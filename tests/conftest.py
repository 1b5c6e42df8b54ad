"""
Shared test fixtures and configuration for pytest
"""
import ssl

import pytest

from relaymail.core.email.smtp.tls import TLSConfig

from .fakes import FakeSMTPServer, StubMail


@pytest.fixture
def smtp_server(monkeypatch):
    """A FakeSMTPServer that also stands in for every TLS context."""
    server = FakeSMTPServer()
    monkeypatch.setattr(TLSConfig, "create_ssl_context", lambda self: server)
    return server


@pytest.fixture
def make_server(monkeypatch):
    """Factory for FakeSMTPServer with custom behaviour, wired as TLS context."""

    def _make(**kwargs):
        server = FakeSMTPServer(**kwargs)
        monkeypatch.setattr(TLSConfig, "create_ssl_context", lambda self: server)
        return server

    return _make


@pytest.fixture
def mail():
    """Two recipients, no credential."""
    return StubMail(recipients=["a@x.com", "b@x.com"])


@pytest.fixture
def tls_failure():
    return ssl.SSLError("handshake failure")
