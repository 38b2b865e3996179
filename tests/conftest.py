"""Pytest configuration and shared fixtures for the data layer tests."""

import os
import tempfile

# Keep log files and the settings DB out of the working tree. Must run before
# config is imported anywhere.
_TMP = tempfile.mkdtemp(prefix="ops_console_tests_")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("SETTINGS_DB_PATH", os.path.join(_TMP, "settings.db"))

import pytest

from models import ApiResponse


class FakeClock:
    """Monotonic clock the tests move by hand (seconds)."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set(self, value: float) -> None:
        self.now = value


@pytest.fixture
def clock():
    return FakeClock()


def ok_response(data, status_code=200, message="OK"):
    return ApiResponse(status_code=status_code, body={"success": True, "message": message, "data": data})


def legacy_response(payload, status_code=200):
    return ApiResponse(status_code=status_code, body={"message": True, "error": payload, "data": None})


def failure_response(message, status_code=400):
    return ApiResponse(status_code=status_code, body={"success": False, "message": message, "data": None})


def order_doc(order_id="o1", status="PLACED", **extra):
    doc = {"_id": order_id, "orderNumber": f"ORD-{order_id}", "status": status}
    doc.update(extra)
    return doc


class CountingLoader:
    """Async loader that records calls and returns queued responses (last one repeats)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    async def __call__(self, *args, **kwargs):
        self.calls += 1
        if len(self.responses) > 1:
            resp = self.responses.pop(0)
        else:
            resp = self.responses[0]
        if isinstance(resp, Exception):
            raise resp
        return resp
