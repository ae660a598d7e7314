"""
Tests for environment-driven configuration.
"""

import os
import unittest
from unittest.mock import patch

from repurposer.config import (
    DatabaseSettings,
    LLMSettings,
    SecuritySettings,
    Settings,
    reload_settings,
)


class TestLLMSettings(unittest.TestCase):
    def test_available_providers_follow_priority(self):
        settings = LLMSettings(
            anthropic_api_key="a",
            groq_api_key=None,
            openai_api_key="o",
            gemini_api_key="g",
            llm_provider_priority="gemini,openai",
        )
        self.assertEqual(settings.available_providers, ["gemini", "openai", "anthropic"])
        self.assertEqual(settings.default_provider, "gemini")

    def test_no_keys_no_providers(self):
        settings = LLMSettings(
            anthropic_api_key=None, groq_api_key=None, openai_api_key=None, gemini_api_key=None
        )
        self.assertFalse(settings.has_any_provider)
        self.assertIsNone(settings.default_provider)


class TestDatabaseSettings(unittest.TestCase):
    @patch.dict(
        os.environ,
        {"DATABASE_URL": "postgresql://pooled/app", "DATABASE_URL_DIRECT": "postgresql://direct/app"},
    )
    def test_direct_url_preferred(self):
        self.assertEqual(DatabaseSettings().database_url, "postgresql://direct/app")

    @patch.dict(os.environ, {"DATABASE_URL": "postgresql://pooled/app"})
    def test_pooled_url_fallback(self):
        os.environ.pop("DATABASE_URL_DIRECT", None)
        settings = DatabaseSettings()
        self.assertEqual(settings.database_url, "postgresql://pooled/app")
        self.assertTrue(settings.is_configured)


class TestSecuritySettings(unittest.TestCase):
    def test_origins_list(self):
        settings = SecuritySettings(allowed_origins="https://a.example, ,https://b.example")
        self.assertEqual(settings.origins_list, ["https://a.example", "https://b.example"])

    @patch.dict(os.environ, {"CRON_SECRET_KEY": "legacy-name"})
    def test_cron_secret_alias(self):
        os.environ.pop("CRON_SECRET", None)
        self.assertEqual(SecuritySettings().cron_secret.get_secret_value(), "legacy-name")

    def test_dev_account_tier_normalized(self):
        self.assertEqual(SecuritySettings(dev_account_tier=" Pro ").dev_account_tier, "pro")


class TestSettings(unittest.TestCase):
    def test_summary_has_no_secrets(self):
        settings = Settings(
            llm=LLMSettings(openai_api_key="sk-very-secret-value"),
            security=SecuritySettings(cron_secret="cron-very-secret"),
        )
        summary = str(settings.get_config_summary())
        self.assertNotIn("sk-very-secret-value", summary)
        self.assertNotIn("cron-very-secret", summary)
        self.assertIn("openai", summary)

    @patch.dict(os.environ, {"ENVIRONMENT": "production"})
    def test_reload_picks_up_environment(self):
        self.assertTrue(reload_settings().is_production)

    def tearDown(self):
        reload_settings()


if __name__ == "__main__":
    unittest.main()
