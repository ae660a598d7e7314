"""
Tests for the repurpose endpoints.

Covers the camelCase response shape, authentication, and the HTTP status
of every rejection the pipeline can produce.
"""

import os
import tempfile
import unittest

from conftest import FakeGenerator, build_test_client, seed_account
from repurposer.config import SecuritySettings, Settings
from repurposer.storage.memory import MemoryDatabase
from repurposer.types.usage import AccountSettings

BODY = {
    "title": "Launch day",
    "content": "We shipped the new editor today and it is fast.",
    "contentType": "blog",
}


class RouteTestCase(unittest.TestCase):
    settings = None

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.memory = MemoryDatabase()
        self.generator = FakeGenerator()
        self.client, self.container, self.store = build_test_client(
            self.memory,
            os.path.join(self._tmp.name, "api_keys.json"),
            generator=self.generator,
            settings=self.settings,
        )

    def tearDown(self):
        self._tmp.cleanup()

    def account_with_key(self, account_id="acct", **kwargs):
        seed_account(self.memory, account_id, **kwargs)
        return {"X-API-Key": self.store.create_key(account_id)}


class TestRepurposeSuccess(RouteTestCase):
    def test_response_shape(self):
        headers = self.account_with_key()
        response = self.client.post("/api/repurpose", json=BODY, headers=headers)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["content"]["title"], "Launch day")
        self.assertEqual(data["content"]["contentType"], "blog")
        self.assertEqual(len(data["content"]["repurposed"]), 2)
        variant = data["content"]["repurposed"][0]
        self.assertEqual(variant["platform"], "twitter")
        self.assertEqual(variant["characterCount"], len(variant["content"]))
        self.assertIn("#launch", variant["hashtags"])
        self.assertEqual(data["usage"]["currentUsage"], 1)
        self.assertEqual(data["usage"]["remainingUsage"], 4)
        self.assertEqual(data["usage"]["plan"], "free")
        self.assertEqual(data["metadata"]["platformsUsed"], ["twitter", "instagram"])
        self.assertEqual(data["metadata"]["provider"], "openai")
        self.assertNotIn("warning", data)

    def test_snake_case_body_accepted(self):
        headers = self.account_with_key()
        body = {"title": "T", "content": "C", "content_type": "blog", "platforms": ["twitter"]}
        response = self.client.post("/api/repurpose", json=body, headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["metadata"]["platformsUsed"], ["twitter"])

    def test_overage_reported_in_usage(self):
        headers = self.account_with_key(monthly=5)
        response = self.client.post(
            "/api/repurpose", json={**BODY, "allowOverage": True}, headers=headers
        )
        usage = response.json()["usage"]
        self.assertTrue(usage["overageCharged"])
        self.assertEqual(usage["overageAmount"], "0.12")

    def test_tier_endpoint(self):
        headers = self.account_with_key(tier="pro")
        response = self.client.post("/api/tiers/pro/repurpose", json=BODY, headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["content"]["repurposed"]), 7)

    def test_dev_mode_without_key_uses_dev_account(self):
        response = self.client.post("/api/repurpose", json=BODY)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.memory.accounts["dev_user"].monthly_usage_count, 1)


class TestRepurposeRejections(RouteTestCase):
    def test_quota_exceeded_is_402(self):
        headers = self.account_with_key(monthly=5)
        response = self.client.post("/api/repurpose", json=BODY, headers=headers)

        self.assertEqual(response.status_code, 402)
        data = response.json()
        self.assertFalse(data["success"])
        self.assertEqual(data["error_code"], "QUOTA_EXCEEDED")
        self.assertIn("$0.12", data["error"])
        self.assertEqual(data["details"]["limitType"], "monthly")
        self.assertEqual(self.generator.call_count, 0)

    def test_inactive_subscription_is_402(self):
        headers = self.account_with_key(tier="basic", status="inactive")
        response = self.client.post("/api/repurpose", json=BODY, headers=headers)
        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.json()["error_code"], "SUBSCRIPTION_REQUIRED")

    def test_tier_mismatch_is_403(self):
        headers = self.account_with_key(tier="basic")
        response = self.client.post("/api/tiers/pro/repurpose", json=BODY, headers=headers)

        self.assertEqual(response.status_code, 403)
        details = response.json()["details"]
        self.assertEqual(details["correctEndpoint"], "/api/tiers/basic/repurpose")
        self.assertEqual(details["requiredTier"], "pro")

    def test_unknown_tier_path_is_404(self):
        headers = self.account_with_key()
        response = self.client.post("/api/tiers/platinum/repurpose", json=BODY, headers=headers)
        self.assertEqual(response.status_code, 404)

    def test_unknown_provider_is_403(self):
        headers = self.account_with_key()
        response = self.client.post(
            "/api/repurpose", json={**BODY, "provider": "gemini"}, headers=headers
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["details"]["availableProviders"], ["openai"])

    def test_missing_field_is_400(self):
        headers = self.account_with_key()
        response = self.client.post("/api/repurpose", json={"title": "T"}, headers=headers)

        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertEqual(data["error_code"], "VALIDATION_ERROR")
        fields = {e["field"] for e in data["details"]["errors"]}
        self.assertIn("content", fields)

    def test_title_over_tier_limit_is_400(self):
        headers = self.account_with_key()
        response = self.client.post(
            "/api/repurpose", json={**BODY, "title": "x" * 101}, headers=headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"]["maxLength"], 100)

    def test_no_allowed_platforms_is_400(self):
        headers = self.account_with_key()
        response = self.client.post(
            "/api/repurpose", json={**BODY, "platforms": ["newsletter"]}, headers=headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "NO_PLATFORMS_AVAILABLE")

    def test_foreign_content_is_404(self):
        owner = self.account_with_key("owner")
        created = self.client.post("/api/repurpose", json=BODY, headers=owner).json()
        intruder = self.account_with_key("intruder")

        response = self.client.post(
            "/api/repurpose",
            json={**BODY, "contentId": created["content"]["id"]},
            headers=intruder,
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error_code"], "CONTENT_NOT_FOUND")

    def test_invalid_key_is_401(self):
        response = self.client.post("/api/repurpose", json=BODY, headers={"X-API-Key": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error_code"], "INVALID_API_KEY")


class TestPersistenceWarning(RouteTestCase):
    def test_save_failure_returns_content_with_warning(self):
        from repurposer.exceptions import DatabaseError

        headers = self.account_with_key()

        async def failing_create(item):
            raise DatabaseError(operation="create_content", internal_message="disk full")

        self.container.synchronizer._repository.create = failing_create
        response = self.client.post("/api/repurpose", json=BODY, headers=headers)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertIn("could not be saved", data["warning"])
        self.assertIsNone(data["content"]["id"])


class TestProductionAuth(RouteTestCase):
    settings = Settings(security=SecuritySettings(dev_mode=False))

    def test_missing_key_is_401(self):
        response = self.client.post("/api/repurpose", json=BODY)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error_code"], "AUTHENTICATION_REQUIRED")


class TestSavedSettings(RouteTestCase):
    def test_preferred_platforms_applied(self):
        headers = self.account_with_key(
            tier="pro", settings=AccountSettings(preferred_platforms=["email", "thread"])
        )
        response = self.client.post("/api/repurpose", json=BODY, headers=headers)
        self.assertEqual(response.json()["metadata"]["platformsUsed"], ["email", "thread"])


if __name__ == "__main__":
    unittest.main()
