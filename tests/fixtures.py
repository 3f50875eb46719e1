"""Canned intercom replies."""

import json
from unittest.mock import MagicMock

BEWARD_SIP_STATUS = "AccountReg1=1\r\nAccountReg2=0\r\n"
BEWARD_SYSINFO = (
    "DeviceModel=DKS15122\r\n"
    "SoftwareVersion=2.2.9.7.5\r\n"
    "UpTime=2.03:15:47\r\n"
)

AKUVOX_STATUS = {"retcode": 0, "action": "status", "data": {"UpTime": 5000}}
AKUVOX_INFO = {"retcode": 0, "action": "info", "data": {"Account1": {"Status": "2"}}}


def make_response(status_code=200, text="", json_body=None):
    response = MagicMock()
    response.status_code = status_code
    if json_body is not None:
        response.text = json.dumps(json_body)
        response.json.return_value = json_body
    else:
        response.text = text
        response.json.side_effect = ValueError("No JSON object could be decoded")
    return response
