"""Общие фикстуры тестов."""

from __future__ import annotations

import json

import httpx
import pytest

from database.models import Product
from deesms import OTPClient


class FakeProvider:
    """Подменяет DeeSMS: отдаёт заготовленные ответы и запоминает запросы."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: dict[str, list] = {}

    def queue(self, path: str, payload, status_code: int = 200) -> None:
        self.responses.setdefault(path, []).append((status_code, payload))

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith(path)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for path, queued in self.responses.items():
            if request.url.path.endswith(path) and queued:
                status_code, payload = queued.pop(0)
                if isinstance(payload, Exception):
                    raise payload
                return httpx.Response(status_code, json=payload)
        return httpx.Response(404, json={"code": "404", "message": "not queued"})

    def client(self) -> OTPClient:
        return OTPClient(
            "test-key",
            "test-secret",
            base_url="https://test-api.com",
            sender="TEST",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "storefront.db"


@pytest.fixture
def product() -> Product:
    return Product(id="1", name="Test Product", price=100, description="Test Description", stock=10, category="test")


@pytest.fixture
def product2() -> Product:
    return Product(id="2", name="Test Product 2", price=200, description="Test Description 2", stock=5, category="test")
