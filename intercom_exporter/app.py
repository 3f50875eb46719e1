import base64
import binascii
import hmac
import logging
from socketserver import ThreadingMixIn
from typing import Callable, List, Optional, Tuple
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIServer, make_server

from .config import Settings, load_settings, setup_logging
from .errors import MissingParameterError, ProbeError
from .metrics import (
    CONTENT_TYPE,
    GlobalMetrics,
    discard,
    new_scoped_registry,
    record_failure,
    record_success,
    render,
)
from .models import ProbeRequest
from .probe import run_probe

logger = logging.getLogger(__name__)

TEXT_PLAIN = "text/plain; charset=utf-8"


def _http_response(start_response, status: str, headers: List[Tuple[str, str]], body: bytes):
    start_response(status, headers)
    return [body]


def _text(start_response, status: str, body: str, extra: Optional[List[Tuple[str, str]]] = None):
    return _http_response(start_response, status, [("Content-Type", TEXT_PLAIN)] + (extra or []), body.encode("utf-8"))


def _authorized(environ, settings: Settings) -> bool:
    header = environ.get("HTTP_AUTHORIZATION", "")
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return False
    try:
        user, _, pw = base64.b64decode(encoded.strip()).decode("utf-8").partition(":")
    except (binascii.Error, UnicodeDecodeError):
        return False
    user_ok = hmac.compare_digest(user.encode(), (settings.auth_user or "").encode())
    pw_ok = hmac.compare_digest(pw.encode(), (settings.auth_pass or "").encode())
    return user_ok and pw_ok


def probe_metrics(request: ProbeRequest, settings: Settings, global_metrics: Optional[GlobalMetrics]) -> bytes:
    """Run one probe in its own registry and return the rendered exposition text."""
    scoped = new_scoped_registry(settings.metrics)
    try:
        try:
            result = run_probe(
                request,
                timeout=settings.timeout,
                verify=settings.verify_tls,
                strict=settings.strict_parsing,
            )
        except ProbeError:
            record_failure(scoped, request.target_url)
        else:
            record_success(scoped, request.target_url, result, global_metrics)
        return render(scoped.registry)
    finally:
        discard(scoped)


def create_app(settings: Optional[Settings] = None,
               global_metrics: Optional[GlobalMetrics] = None) -> Callable:
    settings = settings or Settings()
    if global_metrics is None:
        global_metrics = GlobalMetrics(settings.metrics)

    def app(environ, start_response):
        path = environ.get("PATH_INFO", "/")
        method = environ.get("REQUEST_METHOD", "GET").upper()

        if settings.auth_enabled and not _authorized(environ, settings):
            return _text(
                start_response,
                "401 Unauthorized",
                "unauthorized\n",
                [("WWW-Authenticate", 'Basic realm="intercom-exporter"')],
            )

        if path not in ("/health", "/metrics", "/probe"):
            return _text(start_response, "404 Not Found", "not found\n")

        if method not in ("GET", "HEAD"):
            return _text(start_response, "405 Method Not Allowed", "method not allowed\n", [("Allow", "GET")])

        if path == "/health":
            return _text(start_response, "200 OK", "ok\n")

        try:
            if path == "/metrics":
                output = global_metrics.render()
            else:
                params = parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True)
                try:
                    request = ProbeRequest.from_params(params)
                except MissingParameterError as e:
                    return _text(start_response, "400 Bad Request", f"{e}\n")
                output = probe_metrics(request, settings, global_metrics)
        except Exception as e:
            logger.exception("scrape failed for %s", path)
            return _text(start_response, "500 Internal Server Error", f"scrape failed: {e}\n")

        return _http_response(start_response, "200 OK", [("Content-Type", CONTENT_TYPE)], output)

    return app


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """One thread per request so slow devices don't block other probes."""

    daemon_threads = True


def serve(settings: Settings) -> None:
    app = create_app(settings)
    httpd = make_server(settings.host, settings.port, app, server_class=ThreadingWSGIServer)
    logger.info("Exporter server is running on http://%s:%s", settings.host, settings.port)
    if settings.auth_enabled:
        logger.info("basic auth enabled")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down")
    finally:
        httpd.server_close()


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    serve(settings)
