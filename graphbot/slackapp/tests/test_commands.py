from io import StringIO
from unittest.mock import MagicMock, patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from slackapp.grafana import RenderOptions, RenderResult
from slackapp.management.commands.serve import split_addr


def test_list_dashboards():
    out = StringIO()

    call_command("list_dashboards", stdout=out)

    lines = out.getvalue().splitlines()
    assert [line.split("\t")[0] for line in lines] == ["Disk", "cpu-usage", "memory"]
    assert "dashboard=AbC123/node-exporter" in lines[1]


def test_render_dashboard_writes_png(app_config, tmp_path):
    render_client = MagicMock()
    render_client.fetch_solo_panel.return_value = RenderResult(image=b"png-bytes", url="https://g/render")
    output = tmp_path / "cpu.png"

    with patch.object(app_config, "render_client", render_client):
        call_command("render_dashboard", "cpu-usage", "--range", "2h", "-o", str(output), stdout=StringIO())

    assert output.read_bytes() == b"png-bytes"
    options = render_client.fetch_solo_panel.call_args.args[1]
    assert options == RenderOptions(from_offset="now-2h")


@pytest.mark.parametrize("args", [["missing-dash"], ["cpu-usage", "--range", "2w"]])
def test_render_dashboard_rejects_bad_input(args):
    with pytest.raises(CommandError):
        call_command("render_dashboard", *args, stdout=StringIO())


@pytest.mark.parametrize(
    "addr, expected",
    [
        (":8080", ("0.0.0.0", 8080)),
        ("127.0.0.1:9000", ("127.0.0.1", 9000)),
        ("[::1]:8000", ("::1", 8000)),
    ],
)
def test_split_addr(addr, expected):
    assert split_addr(addr) == expected


@pytest.mark.parametrize("addr", ["8080", "localhost:", "host:http"])
def test_split_addr_rejects_garbage(addr):
    with pytest.raises(CommandError):
        split_addr(addr)


def test_serve_uses_configured_address():
    with patch("slackapp.management.commands.serve.run") as run:
        call_command("serve")

    args, kwargs = run.call_args
    assert args[:2] == ("0.0.0.0", 8080)
    assert kwargs["threading"] is True


def test_serve_bind_failure_is_a_command_error():
    with patch("slackapp.management.commands.serve.run", side_effect=OSError("address in use")):
        with pytest.raises(CommandError):
            call_command("serve", "127.0.0.1:8080")
