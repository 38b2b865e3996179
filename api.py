#api.py
import json
from typing import Optional, Dict, Any

import requests

from config import API_URL, SESSION, HTTP_TIMEOUT_SECONDS
from exceptions import NetworkFailure, ServerRejection, MalformedEnvelope
from models import ApiResponse
from logger import get_logger

log = get_logger("api")

DEFAULT_FAILURE_MESSAGE = "Request failed"


def build_url(path: str) -> str:
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{API_URL}/{path.lstrip('/')}"


def clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Drop None values and stringify the rest, preserving key order."""
    out: Dict[str, str] = {}
    for k, v in (params or {}).items():
        if v is None:
            continue
        if isinstance(v, bool):
            out[k] = "true" if v else "false"
        else:
            out[k] = str(getattr(v, "value", v))
    return out


def send_request(
    method: str,
    path: str,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    logger=None,
) -> ApiResponse:
    """
    Blocking HTTP call on the shared SESSION. Transport errors become
    NetworkFailure; any HTTP status (2xx or not) comes back as ApiResponse so
    the envelope decoder can pick out the server's message.
    """
    logger = logger or log
    url = build_url(path)
    query = clean_params(params)

    if json_body is not None:
        logger.debug(f"{method} {url} params={query} body={json.dumps(json_body, default=str)}")
    else:
        logger.debug(f"{method} {url} params={query}")

    try:
        resp = SESSION.request(
            method,
            url,
            params=query or None,
            json=json_body,
            timeout=HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning(f"{method} {url} transport failure: {e}")
        raise NetworkFailure(f"Could not reach server: {e}", cause=e) from e

    try:
        body = resp.json()
    except ValueError:
        body = resp.text

    logger.debug(f"API Response: {resp.status_code} {resp.text[:2000] if resp.text else ''}")
    return ApiResponse(status_code=resp.status_code, body=body, url=url)


def _failure_message(body: Dict[str, Any]) -> str:
    # Failure envelopes put the human message either in `data` (string) or `message`.
    data = body.get("data")
    if isinstance(data, str) and data:
        return data
    msg = body.get("message")
    if isinstance(msg, str) and msg:
        return msg
    err = body.get("error")
    if isinstance(err, dict) and isinstance(err.get("message"), str):
        return err["message"]
    if isinstance(err, str) and err:
        return err
    return DEFAULT_FAILURE_MESSAGE


def decode_envelope(resp: ApiResponse) -> Any:
    """
    Normalize the backend's response envelopes into the payload value.

    Success shapes:
      1. standard: {"success": true, "data": {...}, "message": "..."}
      2. legacy:   {"message": true, "error": {...}, "data": null}
    Failure shapes:
      - any non-2xx status
      - {"success": false, ...}, {"message": false, ...} or a string message
        without success=true
    Anything else raises MalformedEnvelope.
    """
    body = resp.body

    if not resp.ok:
        message = _failure_message(body) if isinstance(body, dict) else (
            str(body).strip() or f"HTTP {resp.status_code}"
        )
        log.warning(f"Server rejected {resp.url}: {resp.status_code} {message}")
        raise ServerRejection(message, status_code=resp.status_code, raw_body=body)

    if not isinstance(body, dict):
        log.error(f"Malformed envelope from {resp.url}: non-object body {str(body)[:500]!r}")
        raise MalformedEnvelope("Response was not a JSON object", raw_body=body)

    message = body.get("message")

    # Legacy shape is checked first: it also carries a `data` key (null).
    if message is True and isinstance(body.get("error"), dict):
        log.debug(f"Legacy envelope (message=true, payload under error) from {resp.url}")
        return body["error"]

    if body.get("success") is True:
        return body.get("data")

    if body.get("success") is False or message is False or isinstance(message, str):
        text = _failure_message(body)
        log.warning(f"Failure envelope from {resp.url}: {text}")
        raise ServerRejection(text, status_code=resp.status_code, raw_body=body)

    log.error(f"Malformed envelope from {resp.url}: keys={list(body.keys())}")
    raise MalformedEnvelope(
        f"Unrecognized response shape (keys: {', '.join(sorted(body.keys())) or 'none'})",
        raw_body=body,
    )
