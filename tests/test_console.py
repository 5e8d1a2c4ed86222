"""Tests for console logging and the printing result sink."""

from bypassfuzzer.core.filters import FilterConfig, ManualFilter, SmartFilter
from bypassfuzzer.core.models import AttackResult
from bypassfuzzer.reporters.console import ConsoleSink, Log, safe_log


def test_safe_log_reports_logger_failure() -> None:
    class Broken:
        def info(self, msg):
            raise OSError("closed")

    assert safe_log(None, "info", "x") is True
    assert safe_log(Broken(), "info", "x") is False


def test_log_verbosity_levels(capsys) -> None:
    quiet = Log(verbose=0)
    quiet.info("hidden info")
    quiet.debug("hidden debug")
    quiet.warn("shown warning")
    quiet.error("shown error")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "[WARNING]" in out and "shown warning" in out
    assert "[ERROR]" in out

    Log(verbose=2).debug("request line")
    assert "request line" in capsys.readouterr().out


def test_sink_prints_only_filtered_results(baseline, capsys) -> None:
    smart = SmartFilter(max_repeats=1)
    manual = ManualFilter(FilterConfig(enabled=True, hidden_status_codes={403}))
    sink = ConsoleSink(Log(), smart, manual, baseline_status=403)

    results = [
        AttackResult("Header", "X-Forwarded-For: 127.0.0.1", baseline, None, 200, 12, "text/html"),
        AttackResult("Header", "X-Real-IP: 127.0.0.1", baseline, None, 200, 12, "text/html"),
        AttackResult("Verb", "Method: GET", baseline, None, 403, 6, "text/html"),
    ]
    for r in results:
        smart.track(r)
        sink(r)

    out = capsys.readouterr().out
    assert sink.received == 3
    assert sink.shown == 1
    assert "[HIT]" in out
    assert "X-Forwarded-For: 127.0.0.1" in out
    assert "Method: GET" not in out
