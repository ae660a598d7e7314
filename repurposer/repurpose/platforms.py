"""
Platform selection.

The effective platform list is the caller's candidate list (explicit request,
else saved preferences, else everything the tier allows) filtered to the
tier's allowlist, keeping candidate order and dropping duplicates.
"""

import logging
from typing import List, Optional, Sequence

from ..exceptions import NoPlatformsAvailableError
from ..types.usage import TierPolicy

logger = logging.getLogger(__name__)


class PlatformSelector:
    def select(
        self,
        policy: TierPolicy,
        requested: Optional[Sequence[str]] = None,
        preferred: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """
        Resolve the platforms to generate for.

        Raises:
            NoPlatformsAvailableError: If nothing in the candidate list is allowed.
        """
        if requested:
            candidate = list(requested)
        elif preferred:
            candidate = list(preferred)
        else:
            candidate = list(policy.allowed_platforms)

        effective: List[str] = []
        for platform in candidate:
            if policy.allows_platform(platform) and platform not in effective:
                effective.append(platform)

        dropped = [p for p in candidate if not policy.allows_platform(p)]
        if dropped:
            logger.info(
                "Dropped platforms not allowed on %s tier: %s",
                policy.tier.value,
                ", ".join(dropped),
            )

        if not effective:
            raise NoPlatformsAvailableError(
                allowed_platforms=list(policy.allowed_platforms),
                preferred_platforms=list(preferred or []),
                requested_platforms=list(requested) if requested else None,
                plan=policy.tier.value,
            )
        return effective
