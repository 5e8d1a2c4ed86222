import argparse
import sys

import httpx

from bypassfuzzer.core.config import ATTACK_TYPES, FuzzerConfig
from bypassfuzzer.core.engine import Engine
from bypassfuzzer.core.filters import FilterConfig, ManualFilter
from bypassfuzzer.core.models import FuzzerError
from bypassfuzzer.core.orchestrator import FuzzingOrchestrator, resolve_target_url
from bypassfuzzer.core.payloads import HEADER_TEMPLATES, IP_PAYLOADS, URL_PAYLOADS
from bypassfuzzer.parsers.request import Request
from bypassfuzzer.reporters.console import ConsoleSink, Log

STOP_GRACE_S = 7.0


def _int_set(value: str) -> set:
    try:
        return {int(v) for v in value.split(",") if v.strip()}
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma separated integers, got {value!r}")


def _attack_list(value: str) -> list:
    attacks = [a.strip().lower() for a in value.split(",") if a.strip()]
    unknown = [a for a in attacks if a not in ATTACK_TYPES]
    if unknown:
        raise argparse.ArgumentTypeError(
            f"unknown attack type(s): {', '.join(unknown)} (choose from {', '.join(ATTACK_TYPES)})")
    return attacks


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="403/401 access-control bypass fuzzer")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--request", help="Raw request file")
    src.add_argument("--url", help="Target URL (GET)")
    p.add_argument("--request-proto", default="https",
                   choices=["http", "https"])
    p.add_argument("--proxy", help="Proxy (e.g. http://127.0.0.1:8080)")
    p.add_argument("--attacks", type=_attack_list, default=list(ATTACK_TYPES),
                   help=f"Comma separated attack types (default: all of {','.join(ATTACK_TYPES)})")
    p.add_argument("--rps", type=int, default=0,
                   help="Requests per second, 0 = unlimited")
    p.add_argument("--throttle-codes", type=_int_set, default={429, 503},
                   help="Status codes that trigger auto-throttle (default: 429,503)")
    p.add_argument("--no-auto-throttle", action="store_true")
    p.add_argument("--max-delay", type=int, default=None,
                   help="Upper bound in ms for auto-throttle delay (default: none)")
    p.add_argument("--no-smart-filter", action="store_true")
    p.add_argument("--smart-repeats", type=int, default=10,
                   help="Results shown per (status, length, type) pattern")
    p.add_argument("--hide-status", type=_int_set, default={401, 403, 404})
    p.add_argument("--show-status", type=_int_set, default=set())
    p.add_argument("--hide-length", type=_int_set, default=set())
    p.add_argument("--oob", help="Out-of-band callback URL or domain")
    p.add_argument("--header-payloads", help="Custom header template file")
    p.add_argument("--ip-payloads", help="Custom IP payload file")
    p.add_argument("--url-payloads", help="Custom URL payload file")
    p.add_argument("--no-fuzz-existing-cookies", action="store_true",
                   help="Cookie attack: only add new cookies, leave existing ones alone")
    p.add_argument("-v", "--verbose", action="count", default=1,
                   help="-v, -vv")
    return p


def config_from_args(args: argparse.Namespace) -> FuzzerConfig:
    payload_files = {}
    if args.header_payloads:
        payload_files[HEADER_TEMPLATES] = args.header_payloads
    if args.ip_payloads:
        payload_files[IP_PAYLOADS] = args.ip_payloads
    if args.url_payloads:
        payload_files[URL_PAYLOADS] = args.url_payloads

    return FuzzerConfig(
        attack_types=args.attacks,
        requests_per_second=args.rps,
        throttle_status_codes=args.throttle_codes,
        auto_throttle=not args.no_auto_throttle,
        max_delay_ms=args.max_delay,
        smart_filter=not args.no_smart_filter,
        smart_filter_repeats=args.smart_repeats,
        hidden_status_codes=args.hide_status,
        shown_status_codes=args.show_status,
        hidden_lengths=args.hide_length,
        oob_payload=args.oob,
        payload_files=payload_files,
        fuzz_existing_cookies=not args.no_fuzz_existing_cookies,
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    log = Log(verbose=args.verbose)
    config = config_from_args(args)

    try:
        if args.request:
            req = Request(args.request)
            req.parse()
        else:
            req = Request.from_url(args.url)
        baseline = req.to_baseline(tls=args.request_proto == "https")
        target_url = resolve_target_url(baseline)
    except (OSError, ValueError, FuzzerError) as exc:
        log.error(f"Cannot load request: {exc}")
        return 2

    engine = Engine(proxy=args.proxy, logger=log)
    orchestrator = FuzzingOrchestrator(config, engine, logger=log)

    baseline_status = 0
    try:
        resp = engine.send(baseline.with_url(target_url))
        baseline_status = resp.status_code
        log.info(f"Baseline: {baseline.method} {target_url} -> {resp.status_code} "
                 f"({len(resp.content)} bytes)")
    except httpx.HTTPError as exc:
        log.warn(f"Baseline request failed: {exc}")

    manual = ManualFilter(FilterConfig(
        enabled=True,
        hidden_status_codes=config.hidden_status_codes,
        shown_status_codes=config.shown_status_codes,
        hidden_lengths=config.hidden_lengths,
    ))
    sink = ConsoleSink(log, orchestrator.smart_filter, manual, baseline_status)

    try:
        orchestrator.start(baseline, config.enabled_attacks(), sink)
        while not orchestrator.join(0.5):
            pass
    except KeyboardInterrupt:
        log.warn("Interrupted, stopping...")
        orchestrator.stop()
        orchestrator.join(STOP_GRACE_S)
    except FuzzerError as exc:
        log.error(str(exc))
        return 2
    finally:
        orchestrator.cleanup()
        engine.close()

    log.ok(f"{sink.received} results, {sink.shown} shown. {orchestrator.smart_filter.statistics()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
