import json
from unittest import mock

import pytest

import corsprobe


def run_main(argv, side_effect):
    with mock.patch("requests.Session.request", side_effect=side_effect) as request:
        code = corsprobe.main(argv)
    return code, request


def test_main_prints_results(reflecting_server, capsys):
    code, request = run_main(["https://example.com/", "-s", "-n"], reflecting_server)

    assert code == 0
    assert request.call_count == 15
    out = capsys.readouterr().out
    assert "Testing with Origin: null" in out
    assert "[Vulnerable] Null Origin null: https://example.com/ (Status: 200)" in out
    assert "15 vulnerable / 0 potentially vulnerable / 15 probed" in out


def test_main_banner_unless_silent(static_server, capsys):
    run_main(["https://example.com/", "-n"], static_server())
    assert "Detects CORS misconfigurations" in capsys.readouterr().out


def test_main_colors_verdicts(static_server, capsys):
    run_main(["https://example.com/", "-s"], static_server())
    out = capsys.readouterr().out
    assert "\x1b[33m[Potentially Vulnerable]" in out


def test_main_writes_reports(reflecting_server, tmp_path):
    text_path = tmp_path / "report.txt"
    json_path = tmp_path / "report.json"

    code, _ = run_main(
        ["https://example.com/", "-s", "-n", "-o", str(text_path), "-j", str(json_path)],
        reflecting_server,
    )

    assert code == 0
    text = text_path.read_text(encoding="utf-8")
    assert text.count("Testing with Origin:") == 15
    assert text.rstrip().endswith("Vulnerability Check Complete")

    data = json.loads(json_path.read_text(encoding="utf-8"))
    assert data["schema_version"] == "1.0"
    assert len(data["results"]) == 15
    assert data["results"][0]["strategy"] == "Reflected Origin"


def test_main_invalid_url_exits_without_requests(reflecting_server, capsys):
    code, request = run_main(["not a url", "-s", "-n"], reflecting_server)

    assert code == 1
    assert request.call_count == 0
    assert "[X] Invalid URL" in capsys.readouterr().err


def test_main_invalid_method(reflecting_server, capsys):
    code, request = run_main(["https://example.com/", "-s", "-n", "-m", "PUT"], reflecting_server)

    assert code == 1
    assert request.call_count == 0
    assert "Invalid HTTP method. Use GET or POST" in capsys.readouterr().err


def test_main_passes_options_through(reflecting_server):
    with mock.patch("corsprobe.time.sleep") as sleep:
        code, request = run_main(
            ["https://example.com/", "-s", "-n", "-m", "POST", "-r", "100",
             "-k", "sid=1", "-c", "X-A: 1\\nX-B: 2", "--thirdparty", "https://partner.example",
             "--timeout", "2.5", "-x"],
            reflecting_server,
        )

    assert code == 0
    assert sleep.call_count == 14
    first = request.call_args_list[0].kwargs
    assert first["method"] == "POST"
    assert first["timeout"] == 2.5
    assert first["verify"] is False
    assert first["headers"]["X-B"] == "2"
    assert first["headers"]["Cookie"] == "sid=1"
    origins = [c.kwargs["headers"]["Origin"] for c in request.call_args_list]
    assert "https://partner.example" in origins


def test_main_rejects_negative_rate_limit():
    with pytest.raises(SystemExit) as exc:
        corsprobe.main(["https://example.com/", "-r", "-5"])
    assert exc.value.code == 2


def test_main_debug_traces_requests(reflecting_server, capsys):
    run_main(["https://example.com/", "-s", "-n", "--debug"], reflecting_server)
    assert "[DEBUG] REQUEST" in capsys.readouterr().out


def test_main_interrupted(capsys):
    with mock.patch("corsprobe.scan", side_effect=KeyboardInterrupt):
        code = corsprobe.main(["https://example.com/", "-s", "-n"])

    assert code == 130
    assert "Scan interrupted by user" in capsys.readouterr().out


@pytest.mark.parametrize("timeout", ["0", "-1", "abc"])
def test_main_rejects_non_positive_timeout(timeout):
    with pytest.raises(SystemExit) as exc:
        corsprobe.main(["https://example.com/", "--timeout", timeout])
    assert exc.value.code == 2


def test_main_default_timeout(reflecting_server):
    code, request = run_main(["https://example.com/", "-s", "-n"], reflecting_server)

    assert code == 0
    assert request.call_args_list[0].kwargs["timeout"] == corsprobe.TIMEOUT
