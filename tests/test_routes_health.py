"""
Tests for health check endpoints.

Tests the /, /health, /health/db and /health/redis endpoints against the
in-memory backend.
"""

import os
import tempfile
import unittest
from unittest.mock import AsyncMock, MagicMock

from conftest import build_test_client
from repurposer.storage.memory import MemoryDatabase


class HealthTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.client, self.container, _ = build_test_client(
            MemoryDatabase(), os.path.join(self._tmp.name, "api_keys.json")
        )

    def tearDown(self):
        self._tmp.cleanup()


class TestRootEndpoint(HealthTestCase):
    def test_root(self):
        data = self.client.get("/").json()
        self.assertEqual(data["message"], "Content Repurposer API")
        self.assertIn("version", data)


class TestMainHealthEndpoint(HealthTestCase):
    """Tests for the main /health endpoint."""

    def test_health_returns_required_fields(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        data = response.json()

        for key in ("status", "timestamp", "version", "environment", "services"):
            self.assertIn(key, data)
        self.assertEqual(set(data["services"]), {"database", "redis", "sentry", "ai"})

    def test_memory_backend_is_healthy(self):
        data = self.client.get("/health").json()
        self.assertEqual(data["status"], "healthy")
        self.assertEqual(data["services"]["database"]["backend"], "memory")
        self.assertEqual(data["services"]["ai"]["providers"], ["openai"])

    def test_status_values(self):
        data = self.client.get("/health").json()
        for info in data["services"].values():
            self.assertIn(info["status"], {"up", "down", "unconfigured"})

    def test_optional_services_unconfigured(self):
        services = self.client.get("/health").json()["services"]
        self.assertEqual(services["redis"]["status"], "unconfigured")
        self.assertEqual(services["sentry"]["status"], "unconfigured")

    def test_schema_not_ready_is_degraded(self):
        self.container.schema._ready = False
        data = self.client.get("/health").json()
        self.assertEqual(data["status"], "degraded")

    def test_response_carries_request_id(self):
        response = self.client.get("/health", headers={"X-Request-ID": "req-123"})
        self.assertEqual(response.headers["X-Request-ID"], "req-123")
        self.assertIn("X-Response-Time", response.headers)


class TestDatabaseHealthEndpoint(HealthTestCase):
    def test_db_health(self):
        data = self.client.get("/health/db").json()
        self.assertTrue(data["database"]["connected"])
        self.assertTrue(data["database"]["schema_ready"])


class TestRedisHealthEndpoint(HealthTestCase):
    def test_redis_not_configured(self):
        data = self.client.get("/health/redis").json()
        self.assertFalse(data["redis"]["configured"])

    def test_redis_configured(self):
        redis_client = MagicMock()
        redis_client.health_check = AsyncMock(
            return_value={"status": "healthy", "connected": True, "redis_version": "7.2.0"}
        )
        self.container.redis = redis_client

        data = self.client.get("/health/redis").json()

        self.assertTrue(data["redis"]["configured"])
        self.assertTrue(data["redis"]["connected"])
        self.assertEqual(self.client.get("/health").json()["services"]["redis"]["status"], "up")


if __name__ == "__main__":
    unittest.main()
