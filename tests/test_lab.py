"""End-to-end runs against the bundled access-control lab (in process, over WSGI)."""

import httpx
import pytest

pytest.importorskip("flask")

from vuln_lab.app import app  # noqa: E402

from bypassfuzzer.core.config import FuzzerConfig  # noqa: E402
from bypassfuzzer.core.engine import Engine  # noqa: E402
from bypassfuzzer.core.models import BaselineRequest  # noqa: E402
from bypassfuzzer.core.orchestrator import FuzzingOrchestrator  # noqa: E402

LAB = "http://lab.local"


@pytest.fixture
def engine():
    e = Engine(transport=httpx.WSGITransport(app=app, remote_addr="203.0.113.7"))
    yield e
    e.close()


@pytest.fixture
def admin() -> BaselineRequest:
    return BaselineRequest("GET", "/admin", headers=(("Host", "lab.local"),))


def run(engine, baseline, attacks):
    orch = FuzzingOrchestrator(FuzzerConfig(attack_types=attacks), engine)
    results = []
    assert orch.start(baseline, orch.config.enabled_attacks(), results.append)
    assert orch.join(60)
    return results


def bypasses(results, attack_type):
    return [r for r in results if r.attack_type == attack_type and r.status_code == 200]


def test_lab_denies_the_baseline(engine, admin) -> None:
    assert engine.send(admin.with_url(LAB + "/admin")).status_code == 403
    assert engine.send(admin.with_url(LAB + "/")).status_code == 200


def test_header_bypasses_found(engine, admin) -> None:
    hits = [r.payload for r in bypasses(run(engine, admin, ["header"]), "Header")]

    assert "X-Forwarded-For: 127.0.0.1" in hits
    assert "X-Original-URL: /admin (path -> /)" in hits


def test_verb_bypass_found(engine, admin) -> None:
    hits = [r.payload for r in bypasses(run(engine, admin, ["verb"]), "Verb")]

    assert "Method: PUT" in hits
    assert "Method: GET" not in hits


def test_path_shape_bypasses_found(engine, admin) -> None:
    results = run(engine, admin, ["param", "trailingslash", "case"])

    assert any(r.payload == "debug=true" for r in bypasses(results, "Param"))
    assert [r.payload for r in bypasses(results, "TrailingSlash")] == ["/admin/"]
    assert bypasses(results, "Case")


def test_results_carry_response_details(engine, admin) -> None:
    results = run(engine, admin, ["trailingdot"])

    (r,) = results
    assert r.status_code == 403
    assert r.content_type.startswith("text/html")
    assert r.content_length == len(r.response.content)


def test_cookie_flag_bypass_found(engine, admin) -> None:
    results = run(engine, admin, ["cookie"])
    hits = [r.payload for r in bypasses(results, "Cookie")]

    assert "debug=true" in hits
    assert all(r.request.header("Cookie") for r in results)
