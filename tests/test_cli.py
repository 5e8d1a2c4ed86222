"""Tests for the command line front end."""

import pytest

from bypassfuzzer.core.config import ATTACK_TYPES
from bypassfuzzer.core.payloads import IP_PAYLOADS
from bypassfuzzer.main import build_parser, config_from_args, main


def test_defaults() -> None:
    args = build_parser().parse_args(["--url", "https://example.com/admin"])
    config = config_from_args(args)

    assert config.enabled_attacks() == set(ATTACK_TYPES)
    assert config.requests_per_second == 0
    assert config.throttle_status_codes == {429, 503}
    assert config.auto_throttle is True
    assert config.max_delay_ms is None
    assert config.smart_filter_repeats == 10
    assert config.hidden_status_codes == {401, 403, 404}
    assert config.payload_files == {}
    assert config.fuzz_existing_cookies is True


def test_options_map_onto_config() -> None:
    args = build_parser().parse_args([
        "--request", "req.txt", "--attacks", "Header,verb", "--rps", "5",
        "--throttle-codes", "429", "--no-auto-throttle", "--max-delay", "2000",
        "--no-smart-filter", "--hide-status", "404", "--ip-payloads", "ips.txt",
        "--oob", "cb.example.net", "--no-fuzz-existing-cookies",
    ])
    config = config_from_args(args)

    assert config.enabled_attacks() == {"header", "verb"}
    assert config.requests_per_second == 5
    assert config.throttle_status_codes == {429}
    assert config.auto_throttle is False
    assert config.max_delay_ms == 2000
    assert config.smart_filter is False
    assert config.hidden_status_codes == {404}
    assert config.payload_files == {IP_PAYLOADS: "ips.txt"}
    assert config.oob_payload == "cb.example.net"
    assert config.fuzz_existing_cookies is False


@pytest.mark.parametrize("argv", [
    ["--url", "https://example.com/", "--attacks", "header,teleport"],
    ["--url", "https://example.com/", "--throttle-codes", "429,abc"],
    ["--url", "https://example.com/", "--request", "req.txt"],
    [],
])
def test_invalid_arguments_exit(argv) -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(argv)


def test_unreadable_request_file_returns_error(tmp_path, capsys) -> None:
    assert main(["--request", str(tmp_path / "missing.txt")]) == 2
    assert "Cannot load request" in capsys.readouterr().out


def test_request_without_host_returns_error(tmp_path, capsys) -> None:
    req = tmp_path / "req.txt"
    req.write_text("GET /admin HTTP/1.1\nUser-Agent: x\n\n")

    assert main(["--request", str(req)]) == 2
    assert "no Host header" in capsys.readouterr().out
