"""Shared fixtures: a fake requests session standing in for the intercom."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from tests.fixtures import AKUVOX_INFO, AKUVOX_STATUS, BEWARD_SIP_STATUS, BEWARD_SYSINFO, make_response


class FakeDevice:
    """Routes session.request calls to canned responses.

    ``routes`` maps a URL suffix (GET) or an Akuvox action name (POST) to a
    response or an exception to raise.
    """

    def __init__(self, routes):
        self.routes = routes
        self.calls = []
        self.session = MagicMock()
        self.session.request.side_effect = self._request

    def _request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if method == "POST":
            key = json.loads(kwargs["data"])["action"]
        else:
            key = next((suffix for suffix in self.routes if url.endswith(suffix)), url)
        outcome = self.routes.get(key)
        if outcome is None:
            return make_response(404, "not found")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_device():
    """Factory patching the session factory used by the device clients."""
    patchers = []

    def _install(routes):
        device = FakeDevice(routes)
        patcher = patch("intercom_exporter.clients._requests_session", return_value=device.session)
        patcher.start()
        patchers.append(patcher)
        return device

    yield _install
    for patcher in reversed(patchers):
        patcher.stop()


@pytest.fixture
def beward_device(fake_device):
    return fake_device(
        {
            "sip_cgi?action=regstatus&AccountReg": make_response(text=BEWARD_SIP_STATUS),
            "systeminfo_cgi?action=get": make_response(text=BEWARD_SYSINFO),
        }
    )


@pytest.fixture
def akuvox_device(fake_device):
    return fake_device(
        {
            "status": make_response(json_body=AKUVOX_STATUS),
            "info": make_response(json_body=AKUVOX_INFO),
        }
    )


@pytest.fixture
def unreachable_device(fake_device):
    return fake_device(
        {
            "sip_cgi?action=regstatus&AccountReg": make_response(text=BEWARD_SIP_STATUS),
            "systeminfo_cgi?action=get": requests.ConnectTimeout("timed out"),
            "status": requests.ConnectionError("connection refused"),
            "info": make_response(json_body=AKUVOX_INFO),
        }
    )
