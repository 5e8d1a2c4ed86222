"""Payload templates: header placeholder expansion and URL path permutation.

Header templates look like ``X-Forwarded-For: {IP}``. Path permutation takes
``https://host/test1/test2`` and a payload such as ``../`` and produces
``../test1/test2``, ``test1../test2``, ``../test1../test2``,
``test1/../test2`` and so on, plus case and suffix variants.
"""

import random
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional
from urllib.parse import urlsplit

IP = "{IP}"
WHITESPACE = "{WHITESPACE}"
URL = "{URL}"
PATH = "{PATH}"
PATH_SWAP = "{PATH_SWAP}"
OOB = "{OOB}"
OOB_DOMAIN = "{OOB_DOMAIN}"

CASE_CLONES_PER_SEGMENT = 5
CASE_CLONES_PER_SUFFIX = 3

BASE_SUFFIXES = [
    "?debug=true",
    "?admin=true",
    "?user=admin",
    "?detail=true",
    ".html",
    "?.html",
    "%3f.html",
    ".json",
    "?.json",
    "%3f.json",
    ".php",
    "?.php",
    "%3f.php",
    "?wsdl",
    "/application.wadl?detail=true",
]


def random_case(text: str, rng=random) -> str:
    """Flip each letter to upper or lower case at random."""
    return "".join(c.upper() if rng.random() < 0.5 else c.lower() for c in text)


def unique(items: Iterable[str]) -> List[str]:
    """Order-preserving de-duplication."""
    return list(dict.fromkeys(items))


# ── Header templates ───────────────────────────────────────────

@dataclass(frozen=True)
class HeaderPayload:
    name: str
    value: str
    path_swap: bool = False

    @property
    def description(self) -> str:
        if self.path_swap:
            return f"{self.name}: {self.value} (path -> /)"
        return f"{self.name}: {self.value}"


def _oob_domain(oob_payload: Optional[str]) -> Optional[str]:
    if not oob_payload:
        return None
    host = urlsplit(oob_payload).hostname
    if host:
        return host
    return oob_payload.replace("http://", "").replace("https://", "")


def _substitute(template: str, ips: List[str], target_url: str, target_path: str,
                oob_payload: Optional[str],
                oob_provider: Optional[Callable[[], Optional[str]]]) -> List[tuple]:
    """Return (line, path_swap) pairs for one template; first placeholder wins."""
    if IP in template:
        return [(template.replace(IP, ip), False) for ip in ips]
    if WHITESPACE in template:
        return [(template.replace(WHITESPACE, " "), False)]
    if URL in template:
        return [(template.replace(URL, target_url), False)]
    if PATH_SWAP in template:
        return [(template.replace(PATH_SWAP, target_path), True)]
    if PATH in template:
        return [(template.replace(PATH, target_path), False)]
    if OOB in template or OOB_DOMAIN in template:
        domain = None
        if oob_provider is not None:
            try:
                domain = oob_provider()
            except Exception:
                domain = None
        domain = domain or _oob_domain(oob_payload)
        if not domain:
            return []
        if OOB in template:
            return [(template.replace(OOB, f"http://{domain}"), False),
                    (template.replace(OOB, f"https://{domain}"), False)]
        return [(template.replace(OOB_DOMAIN, domain), False)]
    return [(template, False)]


def expand_header_templates(templates: Iterable[str], ips: Iterable[str], target_url: str,
                            oob_payload: Optional[str] = None,
                            oob_provider: Optional[Callable[[], Optional[str]]] = None
                            ) -> List[HeaderPayload]:
    """
    Expand header templates into concrete header payloads.

    ``oob_provider`` is asked for a fresh out-of-band domain per template; when
    it returns nothing the static ``oob_payload`` is used, and OOB templates
    are dropped if neither is available.
    """
    ips = list(ips)
    target_path = urlsplit(target_url).path or "/"
    out: List[HeaderPayload] = []
    for template in templates:
        for line, swap in _substitute(template, ips, target_url, target_path,
                                      oob_payload, oob_provider):
            if ":" not in line:
                continue
            name, value = line.split(":", 1)
            name = name.strip()
            if not name:
                continue
            out.append(HeaderPayload(name, value.strip(), swap))
    return out


# ── URL path permutation ───────────────────────────────────────

class UrlPermutator:
    """Generates path-manipulation URLs for one target URL."""

    def __init__(self, target_url: str, rng: Optional[random.Random] = None):
        self.target_url = target_url
        self.parts = urlsplit(target_url)
        self.segments = [s for s in self.parts.path.split("/") if s]
        self.rng = rng or random.Random()

    def suffix_payloads(self) -> List[str]:
        out = list(BASE_SUFFIXES)
        for suffix in BASE_SUFFIXES:
            for _ in range(CASE_CLONES_PER_SUFFIX):
                out.append(random_case(suffix, self.rng))
        return unique(out)

    def generate_paths(self, payloads: Iterable[str],
                       suffixes: Optional[List[str]] = None) -> List[str]:
        """Rejoined paths (no leading slash) for every segment/payload pair."""
        payloads = list(payloads)
        segs = self.segments
        paths: List[str] = []

        for i, seg in enumerate(segs):
            last = i == len(segs) - 1
            for p in payloads:
                for variant in (p + seg, seg + p, p + seg + p):
                    # "a" + "../" before "b" is "a../b", not "a..//b"
                    if not last and variant.endswith("/") and variant.rstrip("/"):
                        paths.append("/".join(segs[:i] + [variant[:-1]] + segs[i + 1:]))
                    paths.append("/".join(segs[:i] + [variant] + segs[i + 1:]))
            for _ in range(CASE_CLONES_PER_SEGMENT):
                paths.append("/".join(segs[:i] + [random_case(seg, self.rng)] + segs[i + 1:]))

        if segs:
            if suffixes is None:
                suffixes = self.suffix_payloads()
            for suffix in suffixes:
                paths.append("/".join(segs[:-1] + [segs[-1] + suffix]))

        return unique(paths)

    def generate_urls(self, payloads: Iterable[str]) -> List[str]:
        suffixes = self.suffix_payloads() if self.segments else []
        paths = self.generate_paths(payloads, suffixes)
        return unique(self._to_urls(paths, suffixes))

    def _to_urls(self, paths: List[str], suffixes: List[str]) -> List[str]:
        base = f"{self.parts.scheme}://{self.parts.netloc}"
        query = self.parts.query
        urls = []
        for path in paths:
            last = path[path.rfind("/") + 1:]
            if any(s in last for s in suffixes):
                # The suffix brings its own query marker; drop the original query
                urls.append(f"{base}/{path}")
                if query and ("?" in last or "%3f" in last.lower()):
                    urls.append(f"{base}/{path}&{query}")
            elif query:
                urls.append(f"{base}/{path}?{query}")
            else:
                urls.append(f"{base}/{path}")
        return urls
