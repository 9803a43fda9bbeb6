import requests
import argparse
import json
import re
import sys
import time
from enum import Enum
from urllib.parse import unquote, urlparse
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from colorama import Fore, Style, just_fix_windows_console
from requests.cookies import cookiejar_from_dict
from requests.structures import CaseInsensitiveDict

VERSION = "1.0.0"

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:122.0) "
    "Gecko/20100101 Firefox/122.0",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,*/*;q=0.8",
}

DEFAULT_THIRDPARTY = "http://example-thirdparty.com"
DEFAULT_INVALID_ORIGIN = "http://example-invalid-origin.com"

ALLOWED_METHODS = {"GET", "POST"}
PROXY_SCHEMES = {"http", "https", "socks4", "socks4a", "socks5", "socks5h"}

HEADER_NAME_REGEX = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
CONTROL_CHARS_REGEX = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")

TIMEOUT = (5, 10)
DEBUG = False
COLOR = True

# fatal setup errors
INVALID_TARGET = "InvalidTarget"
INVALID_METHOD = "InvalidMethod"
INVALID_COOKIE = "InvalidCookie"
INVALID_PROXY = "InvalidProxy"
INVALID_DELAY = "InvalidDelay"
TRANSPORT_INIT_FAILED = "TransportInitFailed"
# per-strategy errors
INVALID_HEADER = "InvalidHeader"
REQUEST_BUILD_FAILED = "RequestBuildFailed"
REQUEST_FAILED = "RequestFailed"

FATAL_ERRORS = {
    INVALID_TARGET,
    INVALID_METHOD,
    INVALID_COOKIE,
    INVALID_PROXY,
    INVALID_DELAY,
    TRANSPORT_INIT_FAILED,
}

@dataclass
class Result:
    ok: bool
    value: Any = None
    error: Optional[str] = None
    message: str = ""

    @property
    def fatal(self):
        return not self.ok and self.error in FATAL_ERRORS

def success(value=None):
    return Result(ok=True, value=value)

def failure(kind, message):
    return Result(ok=False, error=kind, message=message)

class Verdict(Enum):
    VULNERABLE = "[Vulnerable]"
    REFLECTED_NO_CREDENTIALS = (
        "[Potentially Vulnerable] (Reflected Origin but without credentials)"
    )
    EMPTY_ACAO = (
        "[Potentially Vulnerable] (Access-Control-Allow-Origin header is empty)"
    )
    NOT_VULNERABLE = "[Not Vulnerable]"

    @property
    def label(self):
        return self.value

    @property
    def is_potential(self):
        return self in (Verdict.REFLECTED_NO_CREDENTIALS, Verdict.EMPTY_ACAO)

@dataclass(frozen=True)
class Target:
    url: str
    host: str

@dataclass(frozen=True)
class BypassStrategy:
    name: str
    origin: str

@dataclass
class ScanConfig:
    url: str
    method: str = "GET"
    custom_headers: Optional[str] = None
    cookie: Optional[str] = None
    proxy: Optional[str] = None
    delay_ms: Optional[int] = None
    thirdparty: str = DEFAULT_THIRDPARTY
    invalid_origin: str = DEFAULT_INVALID_ORIGIN
    timeout: Any = TIMEOUT
    verify: bool = True

@dataclass
class ProbeOutcome:
    strategy: str
    origin: str
    url: str
    status_code: int
    headers: Dict[str, str]
    acao: str
    acac: str
    verdict: Verdict

    def to_dict(self):
        return {
            "strategy": self.strategy,
            "origin": self.origin,
            "url": self.url,
            "status_code": self.status_code,
            "headers": dict(self.headers),
            "access-control-allow-origin": self.acao,
            "access-control-allow-credentials": self.acac,
            "verdict": self.verdict.name,
            "verdict_label": self.verdict.label,
        }

@dataclass
class ScanReport:
    target: Target
    method: str
    outcomes: List[ProbeOutcome] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def vulnerable(self):
        return [o for o in self.outcomes if o.verdict is Verdict.VULNERABLE]

    @property
    def potentially_vulnerable(self):
        return [o for o in self.outcomes if o.verdict.is_potential]

    def summary(self):
        counts = {v.name: 0 for v in Verdict}
        for o in self.outcomes:
            counts[o.verdict.name] += 1
        return {
            "target": self.target.url,
            "method": self.method,
            "probed": len(self.outcomes),
            "skipped": len(self.skipped),
            "verdicts": counts,
        }

    def to_dict(self):
        return {
            "schema_version": "1.0",
            "tool": "corsprobe",
            "summary": self.summary(),
            "results": [o.to_dict() for o in self.outcomes],
            "skipped": [
                {"strategy": name, "reason": reason}
                for name, reason in self.skipped
            ],
        }

def dbg(*args):
    if DEBUG:
        print("[DEBUG]", *args, flush=True)

def warn(*args):
    print(paint("[!]", "yellow"), *args, file=sys.stderr, flush=True)

def error(*args):
    print(paint("[X]", "red"), *args, file=sys.stderr, flush=True)

def paint(text, color):
    if not COLOR:
        return text
    return f"{getattr(Fore, color.upper())}{text}{Style.RESET_ALL}"

def debug_request_response(resp, *args, **kwargs):
    dbg(
        "HTTP",
        f"{resp.request.method} {resp.request.url}",
        f"Status={resp.status_code}",
        f"Origin={resp.request.headers.get('Origin')}",
        f"ACAO={resp.headers.get('Access-Control-Allow-Origin')}",
        f"ACAC={resp.headers.get('Access-Control-Allow-Credentials')}",
        f"Vary={resp.headers.get('Vary')}",
    )
    return resp

def header_safe(value: str) -> bool:
    if CONTROL_CHARS_REGEX.search(value):
        return False
    try:
        value.encode("latin-1")
        return True
    except UnicodeEncodeError:
        return False

def normalize_target(raw_url: str) -> Result:
    """Percent-decode the target and pull out the host used for bypass origins."""
    url = unquote(raw_url)
    try:
        parsed = urlparse(url)
        parsed.port
    except ValueError as e:
        return failure(INVALID_TARGET, f"Invalid URL: {e}")
    if not parsed.scheme or not parsed.netloc:
        return failure(INVALID_TARGET, f"Invalid URL: {url!r} is not an absolute URL")

    host = parsed.hostname
    if not host:
        return failure(INVALID_TARGET, f"Error extracting host from URL {url!r}")
    if not host.isascii():
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError as e:
            return failure(INVALID_TARGET, f"Invalid URL: cannot encode host {host!r}: {e}")
    if ":" in host:
        host = f"[{host}]"
    return success(Target(url=url, host=host))

# Each builder takes (host, url, thirdparty, invalid_origin).
# Some origins repeat (Regexp/Advanced/Post-domain, Breaking TLS/HTTP Allowance).
BYPASS_STRATEGIES = [
    ("Reflected Origin", lambda h, u, t, i: u),
    ("Trusted Subdomains", lambda h, u, t, i: f"http://subdomain.{h}"),
    ("Regexp bypass", lambda h, u, t, i: f"http://{h}.attacker.com"),
    ("Null Origin", lambda h, u, t, i: "null"),
    ("Breaking TLS", lambda h, u, t, i: f"http://{h}"),
    ("Advanced Regexp bypass", lambda h, u, t, i: f"http://{h}.attacker.com"),
    ("Pre-domain Bypass", lambda h, u, t, i: f"http://attacker.com.{h}"),
    ("Post-domain Bypass", lambda h, u, t, i: f"http://{h}.attacker.com"),
    ("Backtick Bypass", lambda h, u, t, i: f"http://`{h}`"),
    ("Unescaped Dot Bypass", lambda h, u, t, i: f"http://{h}.com"),
    ("Underscore Bypass", lambda h, u, t, i: f"http://{h}_com"),
    ("Invalid Value", lambda h, u, t, i: i),
    ("Wildcard Value", lambda h, u, t, i: "*"),
    ("Third-party Allowance Test", lambda h, u, t, i: t),
    ("HTTP Allowance Test", lambda h, u, t, i: f"http://{h}"),
]

def generate_bypass_origins(
    target: Target,
    thirdparty: str = DEFAULT_THIRDPARTY,
    invalid_origin: str = DEFAULT_INVALID_ORIGIN,
) -> List[BypassStrategy]:
    return [
        BypassStrategy(name, build(target.host, target.url, thirdparty, invalid_origin))
        for name, build in BYPASS_STRATEGIES
    ]

def parse_custom_headers(raw: Optional[str]) -> Tuple[Dict[str, str], List[Result]]:
    """
    Parse ``Name: value`` lines. Literal ``\\n`` sequences count as line breaks
    so headers can be passed in a single shell argument.

    Returns the parsed headers and one failure per rejected line.
    """
    headers = CaseInsensitiveDict()
    rejected = []
    if not raw:
        return headers, rejected

    for line in raw.replace("\\n", "\n").split("\n"):
        if not line.strip():
            continue
        if ":" not in line:
            rejected.append(failure(INVALID_HEADER, f"Invalid header format: {line}"))
            continue
        name, value = line.split(":", 1)
        name, value = name.strip(), value.strip()
        if not HEADER_NAME_REGEX.match(name):
            rejected.append(failure(INVALID_HEADER, f"Error parsing header name: {name!r}"))
            continue
        if not header_safe(value):
            rejected.append(failure(INVALID_HEADER, f"Error parsing header value for {name}: {value!r}"))
            continue
        headers[name] = value
    return headers, rejected

def build_base_headers(custom_headers=None, cookie=None) -> Result:
    headers = CaseInsensitiveDict(DEFAULT_HEADERS)

    parsed, rejected = parse_custom_headers(custom_headers)
    for r in rejected:
        warn(r.message)
    headers.update(parsed)

    if cookie is not None:
        if not header_safe(cookie):
            return failure(INVALID_COOKIE, f"Error parsing cookie: {cookie!r} cannot be sent as a header")
        headers["Cookie"] = cookie
    return success(headers)

def build_request_headers(base_headers, origin: str) -> Result:
    if not header_safe(origin):
        return failure(REQUEST_BUILD_FAILED, f"Origin {origin!r} cannot be sent as a header")
    headers = CaseInsensitiveDict(base_headers)
    headers["Origin"] = origin
    return success(headers)

def validate_method(method: Optional[str]) -> Result:
    method = (method or "GET").upper()
    if method not in ALLOWED_METHODS:
        return failure(INVALID_METHOD, "Invalid HTTP method. Use GET or POST")
    return success(method)

def validate_proxy(proxy: str) -> Result:
    try:
        parsed = urlparse(proxy)
        parsed.port
    except ValueError as e:
        return failure(INVALID_PROXY, f"Invalid proxy URL: {e}")
    if parsed.scheme.lower() not in PROXY_SCHEMES or not parsed.hostname:
        return failure(INVALID_PROXY, f"Invalid proxy URL: {proxy!r}")
    return success(proxy)

def parse_cookie(cookie: str) -> Dict[str, str]:
    cookies = {}
    for pair in cookie.split(";"):
        name, sep, value = pair.strip().partition("=")
        if sep and name:
            cookies[name] = value
    return cookies

def build_session(proxy=None, cookie=None) -> Result:
    """
    One session per run. ``cookie`` also goes into the jar: requests drops a
    hand-set Cookie header when it follows a redirect and rebuilds it from the jar.
    """
    if proxy:
        checked = validate_proxy(proxy)
        if not checked.ok:
            return checked

    try:
        session = requests.Session()
        adapter = requests.adapters.HTTPAdapter(max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
    except Exception as e:
        return failure(TRANSPORT_INIT_FAILED, f"Error building HTTP session: {e}")

    if proxy:
        session.proxies = {
            "http": proxy,
            "https": proxy,
        }
    if cookie:
        session.cookies.update(cookiejar_from_dict(parse_cookie(cookie)))
    session.hooks["response"].append(debug_request_response)
    return success(session)

def send_request(
    session,
    url,
    headers=None,
    method="GET",
    timeout=TIMEOUT,
    verify=True,
    allow_redirects=True) -> Result:

    dbg("REQUEST",
        "method=", method,
        "url=", url,
        "verify=", verify,
        "headers=", dict(headers or {})
    )

    try:
        resp = session.request(
            method=method,
            url=url,
            headers=headers,
            timeout=timeout,
            verify=verify,
            allow_redirects=allow_redirects,
        )
    except requests.RequestException as e:
        return failure(REQUEST_FAILED, f"Error executing request: {e}")

    dbg("RESPONSE",
        "status=", resp.status_code,
        "final_url=", resp.url,
        "ACAO=", resp.headers.get("Access-Control-Allow-Origin"),
        "ACAC=", resp.headers.get("Access-Control-Allow-Credentials"),
    )
    return success(resp)

def classify(origin: str, acao: Optional[str], acac: Optional[str]) -> Verdict:
    acao = acao or ""
    acac = acac or ""
    if acao == origin and acac == "true":
        return Verdict.VULNERABLE
    if acao == origin:
        return Verdict.REFLECTED_NO_CREDENTIALS
    if acao == "":
        return Verdict.EMPTY_ACAO
    return Verdict.NOT_VULNERABLE

def build_config(
    url,
    method=None,
    custom_headers=None,
    cookie=None,
    proxy=None,
    delay_ms=None,
    thirdparty=DEFAULT_THIRDPARTY,
    invalid_origin=DEFAULT_INVALID_ORIGIN,
    timeout=TIMEOUT,
    verify=True) -> Result:

    checked = validate_method(method)
    if not checked.ok:
        return checked
    if delay_ms is not None and delay_ms < 0:
        return failure(INVALID_DELAY, f"Invalid rate limit: {delay_ms}")

    return success(ScanConfig(
        url=url,
        method=checked.value,
        custom_headers=custom_headers,
        cookie=cookie,
        proxy=proxy,
        delay_ms=delay_ms,
        thirdparty=thirdparty or DEFAULT_THIRDPARTY,
        invalid_origin=invalid_origin or DEFAULT_INVALID_ORIGIN,
        timeout=timeout,
        verify=verify,
    ))

def scan(config: ScanConfig, reporter: Optional[Callable[[ProbeOutcome], None]] = None, session=None) -> Result:
    """
    Run every bypass strategy against ``config.url``, one request at a time.

    Setup problems (target, cookie, proxy, session) return a fatal failure
    before any request is sent. Per-strategy problems are logged, recorded in
    ``ScanReport.skipped`` and the loop moves on. Each outcome is handed to
    ``reporter`` as soon as it is classified.
    """
    normalized = normalize_target(config.url)
    if not normalized.ok:
        return normalized
    target = normalized.value

    base = build_base_headers(config.custom_headers, config.cookie)
    if not base.ok:
        return base

    own_session = session is None
    if own_session:
        built = build_session(config.proxy, config.cookie)
        if not built.ok:
            return built
        session = built.value

    strategies = generate_bypass_origins(target, config.thirdparty, config.invalid_origin)
    report = ScanReport(target=target, method=config.method)
    dbg("SCAN", target.url, "host=", target.host, "strategies=", len(strategies))

    try:
        for index, strategy in enumerate(strategies):
            if index and config.delay_ms:
                time.sleep(config.delay_ms / 1000)

            headers = build_request_headers(base.value, strategy.origin)
            if not headers.ok:
                warn(f"{strategy.name}: {headers.message}")
                report.skipped.append((strategy.name, headers.message))
                continue

            sent = send_request(
                session,
                target.url,
                headers=headers.value,
                method=config.method,
                timeout=config.timeout,
                verify=config.verify,
            )
            if not sent.ok:
                warn(f"{strategy.name}: {sent.message}")
                report.skipped.append((strategy.name, sent.message))
                continue

            resp = sent.value
            acao = resp.headers.get("Access-Control-Allow-Origin", "")
            acac = resp.headers.get("Access-Control-Allow-Credentials", "")
            outcome = ProbeOutcome(
                strategy=strategy.name,
                origin=strategy.origin,
                url=target.url,
                status_code=resp.status_code,
                headers=dict(resp.headers),
                acao=acao,
                acac=acac,
                verdict=classify(strategy.origin, acao, acac),
            )
            report.outcomes.append(outcome)
            if reporter:
                reporter(outcome)
    finally:
        if own_session:
            session.close()

    return success(report)

def format_outcome(outcome: ProbeOutcome) -> str:
    return (
        f"{outcome.verdict.label} {outcome.strategy} {outcome.origin}: "
        f"{outcome.url} (Status: {outcome.status_code})\n"
        f"Access-Control-Allow-Origin: {outcome.acao}\n"
        f"Access-Control-Allow-Credentials: {outcome.acac}"
    )

def format_details(outcome: ProbeOutcome) -> str:
    return (
        f"Testing with Origin: {outcome.origin}\n"
        f"Response Status Code: {outcome.status_code}\n"
        f"Response Headers: {outcome.headers}\n"
        f"Access-Control-Allow-Origin: {outcome.acao}\n"
        f"Access-Control-Allow-Credentials: {outcome.acac}"
    )

def print_outcome(outcome: ProbeOutcome):
    if outcome.verdict is Verdict.VULNERABLE:
        color = "red"
    elif outcome.verdict.is_potential:
        color = "yellow"
    else:
        color = "green"
    print(format_details(outcome))
    print(paint(format_outcome(outcome), color))
    print()

def print_banner():
    print(paint("+---------------------------------------------+", "cyan"))
    print(paint("|", "cyan") + paint(" corsprobe", "yellow") + " " * 35 + paint("|", "cyan"))
    print(paint("|", "cyan") + f" Version {VERSION}" + " " * (36 - len(VERSION)) + paint("|", "cyan"))
    print(paint("|", "cyan") + " Detects CORS misconfigurations" + " " * 14 + paint("|", "cyan"))
    print(paint("+---------------------------------------------+", "cyan"))

def write_text_report(path, report: ScanReport):
    with open(path, "w", encoding="utf-8") as f:
        for outcome in report.outcomes:
            f.write(format_details(outcome) + "\n")
            f.write(format_outcome(outcome) + "\n\n")
        for name, reason in report.skipped:
            f.write(f"Skipped {name}: {reason}\n")
        f.write("Vulnerability Check Complete\n")

def write_json_report(path, report: ScanReport):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=4)

def non_negative_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid rate limit: {value}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"Invalid rate limit: {value}")
    return number

def positive_float(value):
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid timeout: {value}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Invalid timeout: {value}")
    return number

def build_parser():
    parser = argparse.ArgumentParser(prog="corsprobe", description="Detects CORS misconfigurations")
    parser.add_argument("url", help="Target URL to probe")
    parser.add_argument("-c", "--custom-headers", help="Custom headers to include in the requests (format: 'Header1: value1\\nHeader2: value2')")
    parser.add_argument("-k", "--cookie", help="Cookie to include in the requests")
    parser.add_argument("-r", "--rate-limit", type=non_negative_int, help="Delay between requests in milliseconds")
    parser.add_argument("-m", "--method", default="GET", help="HTTP method to use, GET or POST (default: GET)")
    parser.add_argument("-p", "--proxy", help="Proxy URL (http://, https://, socks5://, socks5h:// for Tor)")
    parser.add_argument("-s", "--silent", action="store_true", help="Silent mode, suppresses the banner")
    parser.add_argument("-n", "--no-color", action="store_true", help="Disable color in output")
    parser.add_argument("-o", "--output", help="Text file to save the results")
    parser.add_argument("-j", "--json-output", help="JSON file to save the results")
    parser.add_argument("--thirdparty", default=DEFAULT_THIRDPARTY, help="Third party domain to test")
    parser.add_argument("--invalid-origin", default=DEFAULT_INVALID_ORIGIN, help="Invalid origin to test")
    parser.add_argument("--timeout", type=positive_float, help="Request timeout in seconds")
    parser.add_argument("-x", "--insecure", action="store_true", help="Do not verify TLS certificates")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--debug", action="store_true", help="Enable verbose debugging output for requests")
    return parser

def main(argv=None):
    global DEBUG, COLOR
    args = build_parser().parse_args(argv)
    DEBUG = args.debug
    COLOR = not args.no_color
    if COLOR:
        just_fix_windows_console()

    if not args.silent:
        print_banner()

    if args.insecure:
        requests.packages.urllib3.disable_warnings()

    config = build_config(
        args.url,
        method=args.method,
        custom_headers=args.custom_headers,
        cookie=args.cookie,
        proxy=args.proxy,
        delay_ms=args.rate_limit,
        thirdparty=args.thirdparty,
        invalid_origin=args.invalid_origin,
        timeout=args.timeout if args.timeout is not None else TIMEOUT,
        verify=not args.insecure,
    )
    if not config.ok:
        error(config.message)
        return 1

    try:
        result = scan(config.value, reporter=print_outcome)
    except KeyboardInterrupt:
        print("\nScan interrupted by user")
        return 130

    if not result.ok:
        error(result.message)
        return 1

    report = result.value
    print(
        f"{len(report.vulnerable)} vulnerable / "
        f"{len(report.potentially_vulnerable)} potentially vulnerable / "
        f"{len(report.outcomes)} probed"
    )

    try:
        if args.output:
            write_text_report(args.output, report)
        if args.json_output:
            write_json_report(args.json_output, report)
    except OSError as e:
        error(f"Error writing to output file: {e}")
    print("Vulnerability Check Complete")
    return 0

if __name__ == "__main__":
    sys.exit(main())
