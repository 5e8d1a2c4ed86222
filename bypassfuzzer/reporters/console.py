from colorama import init as colorama_init, Fore, Style
from datetime import datetime
colorama_init(autoreset=True)


def safe_log(logger, level: str, msg: str) -> bool:
    """Write *msg* through *logger* without ever raising.

    Returns False only when the logger itself failed, so callers can treat a
    withdrawn logger as a shutdown signal. No logger at all is not a failure.
    """
    if logger is None:
        return True
    try:
        getattr(logger, level)(msg)
        return True
    except Exception:
        return False


# level -> (tag, colour, minimum verbosity); None means always printed
LEVELS = {
    "debug": ("DEBUG", Fore.MAGENTA, 2),
    "info": ("INFO", Fore.CYAN, 1),
    "warn": ("WARNING", Fore.YELLOW, 0),
    "error": ("ERROR", Fore.RED, None),
    "ok": ("SUCCESS", Fore.GREEN, None),
    "fail": ("FAIL", Fore.RED, None),
}


class Log:
    """Console logger. ``verbose``: 0 quiet, 1 normal, 2 shows every request."""

    def __init__(self, verbose: int = 1):
        self.verbose = verbose
        self.PAY = Fore.MAGENTA

    def _stamp(self, tag: str, color: str) -> str:
        now = datetime.now().strftime("%H:%M:%S")
        return f"[{now}] {color}[{tag}]{Style.RESET_ALL}"

    def _emit(self, level: str, msg: str):
        tag, color, minimum = LEVELS[level]
        if minimum is not None and self.verbose < minimum:
            return
        print(f"{self._stamp(tag, color)} {msg}")

    def info(self, msg: str):
        self._emit("info", msg)

    def warn(self, msg: str):
        self._emit("warn", msg)

    def error(self, msg: str):
        self._emit("error", msg)

    def ok(self, msg: str):
        self._emit("ok", msg)

    def fail(self, msg: str):
        self._emit("fail", msg)

    def debug(self, msg: str):
        self._emit("debug", msg)

    def result(self, result, highlight: bool = False):
        code = result.status_code
        if code == 0:
            code_col = Fore.WHITE
        elif code < 300:
            code_col = Fore.GREEN
        elif code < 400:
            code_col = Fore.CYAN
        elif code < 500:
            code_col = Fore.YELLOW
        else:
            code_col = Fore.RED
        tag = "HIT" if highlight else result.attack_type.upper()
        print(f"{self._stamp(tag, code_col)} {result.attack_type:<13} "
              f"{code_col}{code}{Style.RESET_ALL} "
              f"{Style.DIM}{result.content_length:>7}b {result.content_type or '-'}{Style.RESET_ALL} "
              f"{self.PAY}{result.payload}{Style.RESET_ALL}")


class ConsoleSink:
    """Result sink that prints results passing the smart and manual filters.

    A result is highlighted when it succeeds (status below 400) and differs
    from the baseline status.
    """

    def __init__(self, log: Log, smart_filter, manual_filter, baseline_status: int = 0):
        self.log = log
        self.smart_filter = smart_filter
        self.manual_filter = manual_filter
        self.baseline_status = baseline_status
        self.received = 0
        self.shown = 0

    def __call__(self, result):
        self.received += 1
        if not self.smart_filter.should_show(result):
            return
        if not self.manual_filter.should_show(result):
            return
        self.shown += 1
        highlight = (self.baseline_status and result.status_code
                     and result.status_code != self.baseline_status
                     and result.status_code < 400)
        self.log.result(result, highlight=bool(highlight))
