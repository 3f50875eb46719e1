import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Tuple

import requests
from requests.auth import AuthBase, HTTPBasicAuth, HTTPDigestAuth

from .errors import DeviceUnreachableError, MalformedResponseError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0

BEWARD_CGI_ROOT = "/cgi-bin"
BEWARD_SIP_STATUS_PATH = "/sip_cgi?action=regstatus&AccountReg"
BEWARD_SYSINFO_PATH = "/systeminfo_cgi?action=get"

AKUVOX_API_ROOT = "/api"
AKUVOX_STATUS_PAYLOAD = {"target": "system", "action": "status"}
AKUVOX_INFO_PAYLOAD = {"target": "system", "action": "info"}


def _requests_session() -> requests.Session:
    # No retry adapter: a probe is a single attempt bounded by the timeout.
    return requests.Session()


class DeviceClient(ABC):
    """HTTP client bound to one device for the duration of one probe."""

    def __init__(self, base_url: str, username: str, password: str,
                 timeout: float = DEFAULT_TIMEOUT, verify: bool = False):
        self.base = base_url.rstrip("/")
        self.timeout = timeout
        self.verify = verify
        self.auth = self._make_auth(username, password)
        self.http = _requests_session()

    @abstractmethod
    def _make_auth(self, username: str, password: str) -> AuthBase:
        ...

    def _url(self, path: str) -> str:
        if not path:
            return self.base
        if path.startswith("/"):
            return f"{self.base}{path}"
        return f"{self.base}/{path}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self._url(path)
        try:
            resp = self.http.request(
                method,
                url,
                auth=self.auth,
                timeout=self.timeout,
                verify=self.verify,
                **kwargs,
            )
        except requests.Timeout as e:
            raise DeviceUnreachableError(f"{method} {url} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise DeviceUnreachableError(f"{method} {url} failed: {e}") from e

        if resp.status_code >= 400:
            raise DeviceUnreachableError(f"{method} {url} failed: {resp.status_code}")
        return resp

    def get_text(self, path: str) -> str:
        return self._request("GET", path).text

    def post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        resp = self._request(
            "POST",
            path,
            headers={"Content-Type": "application/json"},
            data=json.dumps(payload),
        )
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"POST {self._url(path)} returned non-JSON body: {resp.text[:200]}") from e

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class BasicAuthClient(DeviceClient):
    def _make_auth(self, username: str, password: str) -> AuthBase:
        return HTTPBasicAuth(username, password)


class DigestAuthClient(DeviceClient):
    # HTTPDigestAuth answers the 401 challenge itself; its nonce state is per thread.
    def _make_auth(self, username: str, password: str) -> AuthBase:
        return HTTPDigestAuth(username, password)


def gather(*calls: Callable[[], Any]) -> List[Any]:
    """Run ``calls`` concurrently and return their results in order.

    Every call is allowed to settle before returning; the first failure (in
    call order) is re-raised.
    """
    with ThreadPoolExecutor(max_workers=max(len(calls), 1)) as pool:
        futures = [pool.submit(call) for call in calls]
    return [f.result() for f in futures]


def fetch_beward(target: str, username: str, password: str,
                 timeout: float = DEFAULT_TIMEOUT, verify: bool = False) -> Tuple[str, str]:
    """Return the raw (SIP status, system info) CGI replies of a Beward panel."""
    logger.info("fetching Beward metrics from %s", target)
    with BasicAuthClient(f"{target.rstrip('/')}{BEWARD_CGI_ROOT}", username, password, timeout, verify) as client:
        sip_status, sysinfo = gather(
            lambda: client.get_text(BEWARD_SIP_STATUS_PATH),
            lambda: client.get_text(BEWARD_SYSINFO_PATH),
        )
    return sip_status, sysinfo


def _unwrap_data(body: Any) -> Dict[str, Any]:
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict):
            return data
    return {}


def fetch_akuvox(target: str, username: str, password: str,
                 timeout: float = DEFAULT_TIMEOUT, verify: bool = False) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Return the ``data`` objects carrying (SIP status, uptime).

    The account registration state is reported by the ``info`` action and the
    uptime by the ``status`` action.
    """
    logger.info("fetching Akuvox metrics from %s", target)
    with DigestAuthClient(f"{target.rstrip('/')}{AKUVOX_API_ROOT}", username, password, timeout, verify) as client:
        status_body, info_body = gather(
            lambda: client.post_json("", AKUVOX_STATUS_PAYLOAD),
            lambda: client.post_json("", AKUVOX_INFO_PAYLOAD),
        )
    return _unwrap_data(info_body), _unwrap_data(status_body)
