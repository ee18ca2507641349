"""Shared fixtures: IPS builders and an in-memory HTTP server."""

from __future__ import annotations

from collections import Counter
from typing import Callable

import httpx
import pytest


def ips_write(offset: int, data: bytes) -> bytes:
    return offset.to_bytes(3, "big") + len(data).to_bytes(2, "big") + data


def ips_fill(offset: int, count: int, value: int) -> bytes:
    return offset.to_bytes(3, "big") + b"\x00\x00" + count.to_bytes(2, "big") + bytes([value])


def ips(*records: bytes, tail: bytes = b"") -> bytes:
    return b"PATCH" + b"".join(records) + b"EOF" + tail


class FakeServer:
    """Routes URL -> (status, body) and counts requests per URL."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes]] = {}
        self.errors: dict[str, list[Exception]] = {}
        self.hits: Counter[str] = Counter()

    def add(self, url: str, body: bytes, status: int = 200) -> None:
        self.routes[url] = (status, body)

    def fail_with(self, url: str, *errors: Exception) -> None:
        """Raise *errors* on the next requests to *url*, one per request."""
        self.errors.setdefault(url, []).extend(errors)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.hits[url] += 1
        pending = self.errors.get(url)
        if pending:
            raise pending.pop(0)
        status, body = self.routes.get(url, (404, b"not found"))
        return httpx.Response(status, content=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def build_ips() -> Callable[..., bytes]:
    return ips


@pytest.fixture
def write_record() -> Callable[[int, bytes], bytes]:
    return ips_write


@pytest.fixture
def fill_record() -> Callable[[int, int, int], bytes]:
    return ips_fill
