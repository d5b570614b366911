import itertools
import logging

import requests

from rpc.endpoint_pool import Endpoint
from rpc.errors import EndpointTimeout, EndpointUnreachable, MalformedResponse

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


def parse_quantity(value) -> int:
    """Decode a JSON-RPC hex quantity ("0x1b4") into an int."""
    if not isinstance(value, str) or not value.startswith("0x") or len(value) < 3:
        raise ValueError(f"not a hex quantity: {value!r}")
    return int(value, 16)


class JsonRpcClient:
    """
    JSON-RPC 2.0 over HTTP(S) for a single endpoint.
    Every failure is raised as one of the EndpointError subclasses so the
    caller never has to know about requests' exception hierarchy.
    """

    def __init__(self, endpoint: Endpoint, timeout: float = 5.0):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def call(self, method: str, params: list = None):
        request_id = next(_request_ids)
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": request_id,
        }

        try:
            resp = self.session.post(self.endpoint.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise EndpointTimeout(self.endpoint, f"timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise EndpointUnreachable(self.endpoint, str(e)) from e

        try:
            data = resp.json()
        except (ValueError, RecursionError) as e:
            raise MalformedResponse(self.endpoint, "response body is not usable JSON") from e

        if not isinstance(data, dict):
            raise MalformedResponse(self.endpoint, f"expected a JSON object, got {type(data).__name__}")
        if data.get("error") is not None:
            raise MalformedResponse(self.endpoint, f"RPC error {data['error']}")
        if "result" not in data:
            raise MalformedResponse(self.endpoint, "response has no 'result'")
        if data.get("id") not in (None, request_id):
            raise MalformedResponse(self.endpoint, f"response id {data.get('id')!r} != {request_id}")

        return data["result"]

    def close(self):
        self.session.close()
