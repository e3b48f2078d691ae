"""
pytest configuration and fixtures.

La app se importa contra SQLite en memoria y un Redis falso en proceso.
"""

import os

# Antes de importar la app: database.py crea el engine al importarse
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"
os.environ["PERIMETER_ENABLED"] = "true"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Generator

import pytest
from fastapi.testclient import TestClient

import database
import main
from perimeter import Perimeter


class FakeRedis:
    """Lo justo de redis.Redis para el rate limit y el health check."""

    def __init__(self):
        self.counters = {}
        self.ttls = {}

    def incrby(self, key, amount=1):
        self.counters[key] = self.counters.get(key, 0) + amount
        return self.counters[key]

    def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    def ttl(self, key):
        if key not in self.counters:
            return -2
        return self.ttls.get(key, -1)

    def pipeline(self):
        return FakePipeline(self)

    def ping(self):
        return True


class FakePipeline:
    """Encola los comandos y los ejecuta juntos en execute(), como MULTI/EXEC."""

    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.commands = []

    def incrby(self, key, amount=1):
        self.commands.append((self.redis.incrby, (key, amount)))
        return self

    def ttl(self, key):
        self.commands.append((self.redis.ttl, (key,)))
        return self

    def execute(self):
        results = [command(*args) for command, args in self.commands]
        self.commands = []
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def make_perimeter(fake_redis):
    """Perímetro con límite amplio; los tests de rate limit lo ajustan."""

    def _make(max_requests=1000, window_seconds=10, verify_crawler=lambda ip, domains: False):
        return Perimeter(
            fake_redis,
            max_requests=max_requests,
            window_seconds=window_seconds,
            verify_crawler=verify_crawler,
        )

    return _make


@pytest.fixture
def client(fake_redis, make_perimeter) -> Generator[TestClient, None, None]:
    """Cliente sobre la app real, con la tabla products vacía."""
    previous_perimeter = main.app.state.perimeter
    previous_redis = main.app.state.redis
    main.app.state.perimeter = make_perimeter()
    main.app.state.redis = fake_redis

    database.Base.metadata.drop_all(bind=database.engine)
    with TestClient(main.app) as test_client:
        yield test_client

    main.app.state.perimeter = previous_perimeter
    main.app.state.redis = previous_redis


@pytest.fixture
def widget() -> dict:
    return {"name": "Widget", "price": 9.99, "image": "http://x/1.png"}
