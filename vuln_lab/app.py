"""AccessLab: deliberately misconfigured access controls for BypassFuzzer testing.

An edge ACL denies a few paths by exact, case-sensitive match, while the
application behind it resolves paths, methods and client addresses more
loosely. Each gap is one class of bypass the fuzzer should report:

  * client IP headers (X-Forwarded-For: 127.0.0.1 ...)
  * URL rewrite headers (X-Original-URL with the request path swapped to /)
  * path case, trailing slash / dot and ;params
  * methods the ACL does not list
  * ?debug=true, or the same flag as a cookie
"""

from flask import Flask, request, jsonify, Response

app = Flask(__name__)

TRUSTED_IPS = {"127.0.0.1", "localhost", "::1"}
IP_HEADERS = ("X-Forwarded-For", "X-Real-IP", "X-Client-IP", "True-Client-IP")
REWRITE_HEADERS = ("X-Original-URL", "X-Rewrite-URL")
BLOCKED_PATHS = {"/admin", "/internal/config"}
ACL_METHODS = {"GET", "POST"}


# ── Helpers ─────────────────────────────────────────────────────

# The edge sits in front of everything, so the socket peer is never trusted;
# only forwarded headers are.
def client_ip() -> str:
    for h in IP_HEADERS:
        value = request.headers.get(h)
        if value:
            return value.split(",")[0].strip()
    return ""


def app_path(raw: str) -> str:
    """How the application resolves a path: case-insensitive, ignores ;params
    and trailing slashes or dots."""
    path = raw.split(";")[0].lower().rstrip("/.")
    return path or "/"


def edge_acl_denies(raw_path: str) -> bool:
    if raw_path not in BLOCKED_PATHS:
        return False
    if request.method not in ACL_METHODS:
        return False
    if client_ip() in TRUSTED_IPS:
        return False
    if request.args.get("debug") == "true":
        return False
    if request.cookies.get("debug") == "true":
        return False
    return True


def forbidden() -> Response:
    return Response("<h1>403 Forbidden</h1>\n", status=403, mimetype="text/html")


def not_found() -> Response:
    return Response("<h1>404 Not Found</h1>\n", status=404, mimetype="text/html")


# ── Application pages ───────────────────────────────────────────

PAGES = {
    "/": lambda: Response("<h1>AccessLab</h1><p>Try /admin</p>\n", mimetype="text/html"),
    "/admin": lambda: Response("<h1>Admin panel</h1><p>users: 3</p>\n", mimetype="text/html"),
    "/internal/config": lambda: jsonify(db="postgres://internal", debug=False),
}


# Every request is handled here so arbitrary methods (INVENTED, HACK...) reach
# the ACL instead of failing in the router.
@app.before_request
def handle():
    raw = request.path
    if edge_acl_denies(raw):
        return forbidden()

    target = raw
    for h in REWRITE_HEADERS:
        if request.headers.get(h):
            target = request.headers[h]
            break

    page = PAGES.get(app_path(target))
    if page is None:
        return not_found()
    return page()


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5000, debug=False)
