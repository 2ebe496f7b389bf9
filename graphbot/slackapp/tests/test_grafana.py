import datetime
import ssl
from unittest.mock import MagicMock, patch

import pytest
import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from slackapp.config import GrafanaSettings
from slackapp.dashboards import Dashboard
from slackapp.errors import CredentialError, RenderError
from slackapp.grafana import (CertificateAuth, HeaderAuth, NoAuth,
                              RenderClient, RenderOptions, RenderResult,
                              build_auth, build_client, load_p12_credentials)

CPU = Dashboard(
    name="cpu-usage",
    dashboard_id="AbC123",
    dashboard_slug="node-exporter",
    org_id="1",
    panel_id="2",
)


def _ok_response(url: str, content: bytes = b"\x89PNG\r\n\x1a\n...") -> MagicMock:
    response = MagicMock()
    response.content = content
    response.url = url
    response.raise_for_status.return_value = None
    return response


# ==============================================================================
# Request building
# ==============================================================================

def test_path_uses_dashboard_id_and_slug():
    client = RenderClient("https://grafana.example.com")

    assert client.build_path(CPU) == "/render/d-solo/AbC123/node-exporter"


def test_path_segments_are_quoted():
    client = RenderClient("https://grafana.example.com")
    odd = Dashboard("odd", "a/b", "my dash", "1", "2")

    assert client.build_path(odd) == "/render/d-solo/a%2Fb/my%20dash"


def test_params_without_window():
    client = RenderClient("https://grafana.example.com")

    assert client.build_params(CPU) == {"orgId": "1", "panelId": "2"}


def test_params_with_from_default_to_now():
    client = RenderClient("https://grafana.example.com")

    params = client.build_params(CPU, RenderOptions(from_offset="now-2h"))

    assert params == {"orgId": "1", "panelId": "2", "from": "now-2h", "to": "now"}


def test_params_with_explicit_window_and_overrides():
    client = RenderClient("https://grafana.example.com")
    options = RenderOptions(
        from_offset="now-7d",
        to_offset="now-1d",
        org_id_override="5",
        panel_id_override="11",
    )

    params = client.build_params(CPU, options)

    assert params == {"orgId": "5", "panelId": "11", "from": "now-7d", "to": "now-1d"}


def test_request_building_is_deterministic():
    client = RenderClient("https://grafana.example.com")
    options = RenderOptions(from_offset="now-5M")

    first = (client.build_path(CPU), client.build_params(CPU, options))
    second = (client.build_path(CPU), client.build_params(CPU, options))

    assert first == second


# ==============================================================================
# Fetching
# ==============================================================================

def test_fetch_returns_body_and_resolved_url():
    client = RenderClient("https://grafana.example.com/")
    resolved = "https://grafana.example.com/render/d-solo/AbC123/node-exporter?orgId=1&panelId=2"

    with patch.object(client.session, "get", return_value=_ok_response(resolved, b"png-bytes")) as get:
        result = client.fetch_solo_panel(CPU)

    assert result == RenderResult(image=b"png-bytes", url=resolved)
    get.assert_called_once_with(
        "https://grafana.example.com/render/d-solo/AbC123/node-exporter",
        params={"orgId": "1", "panelId": "2"},
        timeout=None,
    )


def test_fetch_keeps_endpoint_path_prefix_and_timeout():
    client = RenderClient("https://example.com/grafana", timeout=15)

    with patch.object(client.session, "get", return_value=_ok_response("u")) as get:
        client.fetch_solo_panel(CPU, RenderOptions(from_offset="now-1h"))

    args, kwargs = get.call_args
    assert args == ("https://example.com/grafana/render/d-solo/AbC123/node-exporter",)
    assert kwargs["params"]["from"] == "now-1h"
    assert kwargs["timeout"] == 15


def test_fetch_wraps_http_error_status():
    client = RenderClient("https://grafana.example.com")
    response = _ok_response("u")
    response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

    with patch.object(client.session, "get", return_value=response):
        with pytest.raises(RenderError) as excinfo:
            client.fetch_solo_panel(CPU)

    assert isinstance(excinfo.value.__cause__, requests.HTTPError)


def test_fetch_wraps_transport_error_without_retry():
    client = RenderClient("https://grafana.example.com")

    with patch.object(client.session, "get", side_effect=requests.ConnectionError("refused")) as get:
        with pytest.raises(RenderError):
            client.fetch_solo_panel(CPU)

    assert get.call_count == 1


def test_header_auth_is_sent_on_every_request():
    client = RenderClient("https://grafana.example.com", auth=HeaderAuth("Authorization", "Bearer k"))

    assert client.session.headers["Authorization"] == "Bearer k"


def test_no_auth_adds_no_header():
    client = RenderClient("https://grafana.example.com")

    assert isinstance(client.auth, NoAuth)
    assert "Authorization" not in client.session.headers


def _redirect(client, from_url, to_url):
    """Runs the session's redirect auth handling for a hop from `from_url` to `to_url`."""
    client.session.trust_env = False
    original = client.session.prepare_request(requests.Request("GET", from_url))
    redirected = original.copy()
    redirected.prepare_url(to_url, None)
    response = MagicMock()
    response.request = original
    client.session.rebuild_auth(redirected, response)
    return redirected


def test_api_key_header_is_dropped_on_cross_host_redirect():
    client = RenderClient("https://grafana.example.com", auth=HeaderAuth("X-API-Key", "k"))

    redirected = _redirect(
        client,
        "https://grafana.example.com/render/d-solo/AbC123/node-exporter",
        "https://sso.example.net/login",
    )

    assert "X-API-Key" not in redirected.headers


def test_api_key_header_survives_same_host_redirect():
    client = RenderClient("https://grafana.example.com", auth=HeaderAuth("X-API-Key", "k"))

    redirected = _redirect(
        client,
        "https://grafana.example.com/render/d-solo/AbC123/node-exporter",
        "https://grafana.example.com/grafana/render/d-solo/AbC123/node-exporter",
    )

    assert redirected.headers["X-API-Key"] == "k"


# ==============================================================================
# Credentials
# ==============================================================================

def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _certificate(subject, issuer, public_key, signing_key, ca: bool) -> x509.Certificate:
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(signing_key, hashes.SHA256())
    )


def _p12_bundle(tmp_path, password=b"s3cret", with_ca=True):
    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = _certificate(_name("graphbot test CA"), _name("graphbot test CA"), ca_key.public_key(), ca_key, True)
    client_key = ec.generate_private_key(ec.SECP256R1())
    client_cert = _certificate(_name("graphbot"), _name("graphbot test CA"), client_key.public_key(), ca_key, False)

    encryption = serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
    data = pkcs12.serialize_key_and_certificates(
        b"graphbot", client_key, client_cert, [ca_cert] if with_ca else None, encryption
    )
    path = tmp_path / "client.p12"
    path.write_bytes(data)
    return str(path)


def test_p12_bundle_loads_into_ssl_context(tmp_path):
    auth = load_p12_credentials(_p12_bundle(tmp_path), "s3cret")

    assert isinstance(auth, CertificateAuth)
    assert isinstance(auth.ssl_context, ssl.SSLContext)
    assert any(
        ("commonName", "graphbot test CA") in field
        for ca in auth.ssl_context.get_ca_certs()
        for field in ca["subject"]
    )


def test_certificate_auth_binds_context_to_https_transport(tmp_path):
    auth = load_p12_credentials(_p12_bundle(tmp_path), "s3cret")
    client = RenderClient("https://grafana.example.com", auth=auth)

    adapter = client.session.get_adapter("https://grafana.example.com/render")

    assert adapter.poolmanager.connection_pool_kw["ssl_context"] is auth.ssl_context


def test_p12_wrong_password_fails_fast(tmp_path):
    with pytest.raises(CredentialError):
        load_p12_credentials(_p12_bundle(tmp_path), "wrong")


def test_p12_without_ca_chain_is_rejected(tmp_path):
    with pytest.raises(CredentialError):
        load_p12_credentials(_p12_bundle(tmp_path, with_ca=False), "s3cret")


def test_p12_garbage_is_rejected(tmp_path):
    path = tmp_path / "garbage.p12"
    path.write_bytes(b"definitely not pkcs12")

    with pytest.raises(CredentialError):
        load_p12_credentials(str(path), "s3cret")


def test_p12_missing_file_is_rejected(tmp_path):
    with pytest.raises(CredentialError):
        load_p12_credentials(str(tmp_path / "missing.p12"), "s3cret")


def test_build_auth_selects_one_mode(tmp_path):
    assert build_auth() == NoAuth()
    assert build_auth(header_name="X-Key", header_value="v") == HeaderAuth("X-Key", "v")
    assert isinstance(build_auth(p12_path=_p12_bundle(tmp_path), p12_password="s3cret"), CertificateAuth)


def test_build_auth_rejects_header_and_certificate_together(tmp_path):
    with pytest.raises(CredentialError):
        build_auth(header_name="X-Key", header_value="v", p12_path=_p12_bundle(tmp_path), p12_password="s3cret")


@pytest.mark.parametrize("name, value", [("X-Key", None), (None, "v")])
def test_build_auth_rejects_half_a_header(name, value):
    with pytest.raises(CredentialError):
        build_auth(header_name=name, header_value=value)


def test_build_client_from_settings():
    settings = GrafanaSettings(
        endpoint="https://grafana.example.com",
        auth_header="Authorization",
        auth_value="Bearer k",
        timeout=5.0,
    )

    client = build_client(settings)

    assert client.auth == HeaderAuth("Authorization", "Bearer k")
    assert client.timeout == 5.0


def test_build_client_ignores_bundle_when_client_auth_disabled(tmp_path):
    settings = GrafanaSettings(
        endpoint="https://grafana.example.com",
        client_auth_p12=str(tmp_path / "missing.p12"),
    )

    assert isinstance(build_client(settings).auth, NoAuth)
