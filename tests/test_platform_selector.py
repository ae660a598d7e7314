"""
Tests for platform selection against tier allowlists.
"""

import unittest

from repurposer.exceptions import NoPlatformsAvailableError
from repurposer.repurpose.platforms import PlatformSelector
from repurposer.types.usage import TIER_POLICIES, SubscriptionTier

FREE = TIER_POLICIES[SubscriptionTier.FREE]
PRO = TIER_POLICIES[SubscriptionTier.PRO]


class TestPlatformSelector(unittest.TestCase):
    def setUp(self):
        self.selector = PlatformSelector()

    def test_defaults_to_everything_the_tier_allows(self):
        self.assertEqual(self.selector.select(FREE), ["twitter", "instagram"])

    def test_requested_platforms_are_filtered(self):
        result = self.selector.select(FREE, requested=["linkedin", "twitter"])
        self.assertEqual(result, ["twitter"])

    def test_requested_order_is_kept_and_duplicates_dropped(self):
        result = self.selector.select(PRO, requested=["email", "twitter", "email"])
        self.assertEqual(result, ["email", "twitter"])

    def test_preferences_used_when_nothing_requested(self):
        result = self.selector.select(PRO, requested=None, preferred=["linkedin", "newsletter"])
        self.assertEqual(result, ["linkedin", "newsletter"])

    def test_request_overrides_preferences(self):
        result = self.selector.select(PRO, requested=["thread"], preferred=["linkedin"])
        self.assertEqual(result, ["thread"])

    def test_no_allowed_platform_raises(self):
        with self.assertRaises(NoPlatformsAvailableError) as ctx:
            self.selector.select(FREE, requested=["linkedin", "email"])

        error = ctx.exception
        self.assertEqual(error.status_code, 400)
        self.assertEqual(error.details["allowedPlatforms"], ["twitter", "instagram"])
        self.assertEqual(error.details["requestedPlatforms"], ["linkedin", "email"])
        self.assertEqual(error.details["plan"], "free")

    def test_disallowed_preferences_raise(self):
        with self.assertRaises(NoPlatformsAvailableError) as ctx:
            self.selector.select(FREE, preferred=["newsletter"])
        self.assertEqual(ctx.exception.details["preferredPlatforms"], ["newsletter"])


if __name__ == "__main__":
    unittest.main()
