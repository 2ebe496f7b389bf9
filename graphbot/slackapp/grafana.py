# graphbot/slackapp/grafana.py

"""
Client for the Grafana image renderer.

A single `RenderClient` is built at startup and shared by every delivery task
in the process. It asks the solo-panel render endpoint for one panel and
returns the PNG bytes together with the URL that produced them.

Authentication is chosen once, when the client is built:

- `NoAuth`: plain requests.
- `HeaderAuth`: a static header (for example an API key) on every request.
- `CertificateAuth`: mutual TLS with a client certificate loaded from a
  PKCS#12 bundle.
"""

import logging
import os
import ssl
import tempfile
from dataclasses import dataclass
from typing import Dict, Optional, Union
from urllib.parse import quote

import requests
from cryptography.hazmat.primitives.serialization import (Encoding,
                                                          NoEncryption,
                                                          PrivateFormat,
                                                          pkcs12)
from requests.adapters import HTTPAdapter

from .dashboards import Dashboard
from .errors import CredentialError, RenderError

LOGGER = logging.getLogger(__name__)

SOLO_PANEL_PATH = "/render/d-solo/{dashboard_id}/{dashboard_slug}"
DEFAULT_TO_OFFSET = "now"


# ==============================================================================
# Authentication modes
# ==============================================================================

@dataclass(frozen=True)
class NoAuth:
    pass


@dataclass(frozen=True)
class HeaderAuth:
    name: str
    value: str


@dataclass(frozen=True)
class CertificateAuth:
    ssl_context: ssl.SSLContext


Auth = Union[NoAuth, HeaderAuth, CertificateAuth]


def load_p12_credentials(path: str, password: Optional[str]) -> CertificateAuth:
    """
    Loads a client certificate, its private key and the CA chain from a
    PKCS#12 bundle into an SSL context.

    The context trusts the system roots plus the bundle's CA certificates.
    Any problem with the bundle raises `CredentialError` immediately, so a bad
    bundle stops the process at startup rather than failing a render later.
    """
    try:
        with open(path, "rb") as fh:
            bundle = fh.read()
    except OSError as e:
        raise CredentialError(f"cannot read client certificate bundle {path}: {e}") from e

    try:
        key, certificate, ca_certificates = pkcs12.load_key_and_certificates(
            bundle, password.encode("utf-8") if password else None
        )
    except ValueError as e:
        raise CredentialError(f"cannot decode client certificate bundle {path}: {e}") from e

    if key is None or certificate is None or not ca_certificates:
        raise CredentialError(
            f"client certificate bundle {path} needs a certificate, a private key and a CA chain"
        )

    context = ssl.create_default_context()
    try:
        context.load_verify_locations(
            cadata="".join(ca.public_bytes(Encoding.PEM).decode("ascii") for ca in ca_certificates)
        )
        # load_cert_chain only accepts file paths; the files live only until
        # the context has read them.
        with tempfile.TemporaryDirectory() as workdir:
            cert_file = os.path.join(workdir, "client.crt")
            key_file = os.path.join(workdir, "client.key")
            with open(cert_file, "wb") as fh:
                fh.write(certificate.public_bytes(Encoding.PEM))
            with open(key_file, "wb") as fh:
                fh.write(key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()))
            context.load_cert_chain(cert_file, key_file)
    except (ssl.SSLError, OSError) as e:
        raise CredentialError(f"cannot use client certificate bundle {path}: {e}") from e

    LOGGER.info(f"Loaded client certificate {certificate.subject.rfc4514_string()} from {path}")
    return CertificateAuth(ssl_context=context)


def build_auth(
    header_name: Optional[str] = None,
    header_value: Optional[str] = None,
    p12_path: Optional[str] = None,
    p12_password: Optional[str] = None,
) -> Auth:
    """Selects exactly one authentication mode from the configured values."""
    use_header = bool(header_name or header_value)
    if use_header and p12_path:
        raise CredentialError("configure either an auth header or a client certificate, not both")
    if use_header:
        if not header_name or not header_value:
            raise CredentialError("an auth header needs both a name and a value")
        return HeaderAuth(name=header_name, value=header_value)
    if p12_path:
        return load_p12_credentials(p12_path, p12_password)
    return NoAuth()


class _SSLContextAdapter(HTTPAdapter):
    """Transport adapter that makes urllib3 use a prepared SSL context."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        # Set before super().__init__, which builds the pool manager.
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().proxy_manager_for(*args, **kwargs)


class RenderSession(requests.Session):
    """
    Session that treats extra headers as credentials on redirects.

    requests drops only ``Authorization`` when a redirect leaves the original
    host. Headers named in `credential_headers` are dropped the same way, so
    an API key never follows Grafana to an SSO or proxy host.
    """

    def __init__(self):
        super().__init__()
        self.credential_headers = set()

    def rebuild_auth(self, prepared_request, response):
        if self.should_strip_auth(response.request.url, prepared_request.url):
            for name in self.credential_headers:
                prepared_request.headers.pop(name, None)
        super().rebuild_auth(prepared_request, response)


# ==============================================================================
# Rendering
# ==============================================================================

@dataclass(frozen=True)
class RenderOptions:
    """
    Per-request rendering options.

    `to_offset` defaults to ``now`` when only `from_offset` is given. With
    neither set, no window is sent and Grafana uses the dashboard's own range.
    The overrides replace the dashboard's configured org and panel.
    """

    from_offset: Optional[str] = None
    to_offset: Optional[str] = None
    org_id_override: Optional[str] = None
    panel_id_override: Optional[str] = None


@dataclass(frozen=True)
class RenderResult:
    image: bytes
    url: str


class RenderClient:
    """Fetches solo-panel PNGs from a Grafana endpoint."""

    def __init__(self, endpoint: str, auth: Optional[Auth] = None, timeout: Optional[float] = None):
        self.endpoint = endpoint.rstrip("/")
        self.auth = auth if auth is not None else NoAuth()
        self.timeout = timeout
        self.session = RenderSession()

        if isinstance(self.auth, HeaderAuth):
            self.session.headers[self.auth.name] = self.auth.value
            self.session.credential_headers.add(self.auth.name)
        elif isinstance(self.auth, CertificateAuth):
            self.session.mount("https://", _SSLContextAdapter(self.auth.ssl_context))

    def build_path(self, dashboard: Dashboard) -> str:
        return SOLO_PANEL_PATH.format(
            dashboard_id=quote(dashboard.dashboard_id, safe=""),
            dashboard_slug=quote(dashboard.dashboard_slug, safe=""),
        )

    def build_params(self, dashboard: Dashboard, options: Optional[RenderOptions] = None) -> Dict[str, str]:
        options = options or RenderOptions()
        params = {
            "orgId": options.org_id_override or dashboard.org_id,
            "panelId": options.panel_id_override or dashboard.panel_id,
        }
        if options.from_offset:
            params["from"] = options.from_offset
            params["to"] = options.to_offset or DEFAULT_TO_OFFSET
        elif options.to_offset:
            params["to"] = options.to_offset
        return params

    def fetch_solo_panel(self, dashboard: Dashboard, options: Optional[RenderOptions] = None) -> RenderResult:
        """
        Renders one panel. Makes exactly one request and never retries.

        Raises:
            RenderError: on any transport failure or non-2xx response.
        """
        url = self.endpoint + self.build_path(dashboard)
        params = self.build_params(dashboard, options)
        LOGGER.info(f"Rendering dashboard '{dashboard.name}' from {url} with {params}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RenderError(f"rendering dashboard '{dashboard.name}' failed: {e}") from e
        return RenderResult(image=response.content, url=response.url)


def build_client(grafana_settings) -> RenderClient:
    """Builds the process-wide client from `GrafanaSettings`."""
    auth = build_auth(
        header_name=grafana_settings.auth_header,
        header_value=grafana_settings.auth_value,
        p12_path=grafana_settings.client_auth_p12 if grafana_settings.use_client_auth else None,
        p12_password=grafana_settings.client_auth_password,
    )
    LOGGER.info(f"Grafana render client for {grafana_settings.endpoint} using {type(auth).__name__}")
    return RenderClient(grafana_settings.endpoint, auth=auth, timeout=grafana_settings.timeout)
