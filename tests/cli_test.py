from pytest import fixture
from typer.testing import CliRunner

from seek_streams.cli import app

from .data import EXAMPLE_CONTENT, EXAMPLE_URL
from .share import MockRangeServer

runner = CliRunner()


@fixture
def server(monkeypatch):
    server = MockRangeServer()
    monkeypatch.setattr(
        "seek_streams.cli.make_client", lambda timeout_s: server.client()
    )
    return server


def test_read_window_to_file(server, tmp_path):
    out = tmp_path / "window.bin"
    args = [EXAMPLE_URL, "--offset", "500", "-n", "100", "-o", str(out)]
    result = runner.invoke(app, args)
    assert result.exit_code == 0
    assert out.read_bytes() == EXAMPLE_CONTENT[500:600]
    assert "Read 100 bytes at 500 of 1,000 (audio/mpeg)" in result.output
    assert server.range_headers == ["bytes=0-", "bytes=500-"]


def test_read_tail_to_stdout(server):
    result = runner.invoke(app, [EXAMPLE_URL, "-s", "990"])
    assert result.exit_code == 0
    assert result.stdout_bytes.startswith(EXAMPLE_CONTENT[990:])


def test_read_past_end(server, tmp_path):
    out = tmp_path / "empty.bin"
    result = runner.invoke(app, [EXAMPLE_URL, "-s", "2000", "-o", str(out)])
    assert result.exit_code == 0
    assert out.read_bytes() == b""
    assert len(server.requests) == 1


def test_range_requests_unsupported(server):
    server.accept_ranges = False
    result = runner.invoke(app, [EXAMPLE_URL, "-s", "10"])
    assert result.exit_code == 1
    assert "Error: range requests unsupported" in result.output


def test_negative_offset_rejected(server):
    result = runner.invoke(app, [EXAMPLE_URL, "--offset", "-5"])
    assert result.exit_code != 0
    assert server.requests == []
