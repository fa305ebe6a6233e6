"""
HTTP transport for license verification.

The trust root is read from the operating system once, when the client is built,
and kept in memory. Certificates added to the system store afterwards (for example
by an intercepting proxy installed at runtime) are never trusted by this client.
"""
import os
import ssl
import sys
from typing import Optional

import httpx
import logfire

from gumroad_license.core.config.transport_config import TransportConfig


def _load_capath(context: ssl.SSLContext, capath: str) -> int:
    """Eagerly load every PEM certificate found in an OpenSSL hashed directory."""
    loaded = 0
    for name in sorted(os.listdir(capath)):
        path = os.path.join(capath, name)
        if not os.path.isfile(path):
            continue
        try:
            with open(path, "r", encoding="ascii") as cert_file:
                pem = cert_file.read()
        except (OSError, UnicodeDecodeError):
            logfire.debug(f"Skipping unreadable trust store entry {path}")
            continue
        if "BEGIN CERTIFICATE" not in pem:
            continue
        try:
            context.load_verify_locations(cadata=pem)
            loaded += 1
        except ssl.SSLError as e:
            logfire.debug(f"Skipping invalid certificate {path}: {str(e)}")
    return loaded


def build_ssl_context(http2: bool = True) -> ssl.SSLContext:
    """
    Capture the system trust store into a new SSL context.

    Args:
        http2: Advertise h2 via ALPN in addition to http/1.1

    Returns:
        A client context with hostname checking on. If the system store cannot be
        read the context has an empty trust root, so every TLS handshake fails
        instead of falling back to a store that could have been tampered with.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.set_alpn_protocols(["h2", "http/1.1"] if http2 else ["http/1.1"])

    try:
        if sys.platform == "win32":
            # Windows enumerates its system stores eagerly
            context.load_default_certs(ssl.Purpose.SERVER_AUTH)
        else:
            paths = ssl.get_default_verify_paths()
            if paths.cafile:
                context.load_verify_locations(cafile=paths.cafile)
            if paths.capath:
                _load_capath(context, paths.capath)
            if sys.platform == "darwin" and not context.cert_store_stats()["x509_ca"]:
                context.load_default_certs(ssl.Purpose.SERVER_AUTH)
    except (ssl.SSLError, OSError) as e:
        logfire.warning(
            f"Could not read the system trust store, continuing with an empty trust root: {str(e)}"
        )
        return context

    stats = context.cert_store_stats()
    if not stats["x509_ca"]:
        logfire.warning("System trust store is empty, TLS connections will not be trusted")
    else:
        logfire.debug("Captured system trust store", extra={"certificates": stats["x509_ca"]})

    return context


def build_client(
    config: Optional[TransportConfig] = None,
    ssl_context: Optional[ssl.SSLContext] = None,
) -> httpx.AsyncClient:
    """
    Build the HTTP client a verifier uses for its whole lifetime.

    Args:
        config: Timeouts and pool bounds, defaults to TransportConfig()
        ssl_context: Trust root to pin, captured from the system when omitted

    Returns:
        An httpx.AsyncClient. Proxies are taken from HTTP_PROXY/HTTPS_PROXY/NO_PROXY.
    """
    config = config or TransportConfig()
    if ssl_context is None:
        ssl_context = build_ssl_context(http2=config.http2)

    return httpx.AsyncClient(
        verify=ssl_context,
        http2=config.http2,
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_idle_connections,
            keepalive_expiry=config.idle_connection_timeout,
        ),
        timeout=httpx.Timeout(config.call_timeout, connect=config.handshake_timeout),
        trust_env=True,
        follow_redirects=False,
    )
