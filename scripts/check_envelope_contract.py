# scripts/check_envelope_contract.py
#
# Manual probe: hits the read endpoints of the configured backend and reports
# which response envelope each one uses. Run against LIVE before removing the
# legacy (message=true / payload under "error") branch from api.decode_envelope.

import os, sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from config import API_URL, ENV
from api import send_request, decode_envelope
from exceptions import DataLayerError


def envelope_shape(body) -> str:
    if not isinstance(body, dict):
        return "non-object"
    if body.get("message") is True and isinstance(body.get("error"), dict):
        return "legacy (message=true, payload in error)"
    if body.get("success") is True:
        return "standard (success=true, payload in data)"
    if body.get("success") is False or body.get("message") is False or isinstance(body.get("message"), str):
        return "failure"
    return f"unknown keys={sorted(body.keys())}"


def main():
    order_id = sys.argv[1] if len(sys.argv) > 1 else None

    probes = [
        ("GET", "/api/orders/admin/all", {"page": 1, "limit": 1}),
        ("GET", "/api/orders/kitchen", {"page": 1, "limit": 1}),
        ("GET", "/api/orders/admin/stats", None),
    ]
    if order_id:
        probes.append(("GET", f"/api/orders/{order_id}", None))

    print(f"Backend: {API_URL} (ENV={ENV})")
    for method, path, params in probes:
        try:
            resp = send_request(method, path, params)
        except DataLayerError as e:
            print(f"  {path}: transport error: {e}")
            continue

        shape = envelope_shape(resp.body)
        try:
            decode_envelope(resp)
            verdict = "normalized OK"
        except DataLayerError as e:
            verdict = f"{type(e).__name__}: {e}"
        print(f"  {path}: HTTP {resp.status_code} | {shape} | {verdict}")


if __name__ == "__main__":
    main()
