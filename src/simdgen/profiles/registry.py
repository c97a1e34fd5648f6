"""
Intrinsic profile registry.

An explicit, immutable catalog keyed by (architecture, element type). The
default catalog is built once per process and frozen; callers that need a
custom catalog build their own ProfileRegistry and pass it in.
"""

import logging
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Tuple

from ..shared.errors import ConfigurationError, ProfileNotFoundError
from ..shared.types import ELEMENT_TYPES, canonical_element_name
from .base import IntrinsicProfile, MathStrategy
from .neon import neon_profiles
from .x86 import x86_profiles

logger = logging.getLogger(__name__)

ProfileKey = Tuple[str, str]

# Promoted profiles compute in f32
_COMPUTE_ITEMSIZE = 4


def canonical_architecture(name: str) -> str:
    return name.strip().upper()


def validate_profile(profile: IntrinsicProfile) -> None:
    """
    Check a profile's internal consistency.

    Every vector tier needs a vector type and must fill its register exactly,
    counting either the storage width or, for promoted profiles, the f32
    compute width. Op tables may only reference tiers the profile declares.
    """
    name = f"{profile.architecture}:{profile.element_type}"
    element = ELEMENT_TYPES.get(profile.element_type)
    if element is None:
        raise ConfigurationError(f"profile {name}: unknown element type")
    vector_tiers = [t for t in profile.tiers if not t.is_scalar]
    if not vector_tiers:
        raise ConfigurationError(f"profile {name}: no vector tiers")
    declared = {t.tier for t in profile.tiers}
    for loop_tier in vector_tiers:
        if loop_tier.tier not in profile.vec_types:
            raise ConfigurationError(f"profile {name}: no vector type for tier {loop_tier.tier.value}")
        register = loop_tier.tier.register_bytes
        widths = {loop_tier.lanes * element.itemsize}
        if profile.math_strategy is MathStrategy.PROMOTED:
            widths.add(loop_tier.lanes * _COMPUTE_ITEMSIZE)
        if register not in widths:
            raise ConfigurationError(
                f"profile {name}: {loop_tier.lanes} lanes do not fill a "
                f"{register}-byte {loop_tier.tier.value} register"
            )
        if loop_tier.unroll < 1:
            raise ConfigurationError(f"profile {name}: unroll must be >= 1")
    for op, per_tier in profile.ops.items():
        unknown = set(per_tier) - declared
        if unknown:
            tiers = ", ".join(sorted(t.value for t in unknown))
            raise ConfigurationError(f"profile {name}: {op.value} mapped for undeclared tier(s) {tiers}")


class ProfileRegistry:
    """
    Catalog of intrinsic profiles.

    Insertion order is preserved so listings are stable. Once ``freeze()``
    is called the registry rejects further registration; lookups are pure
    reads and safe from any thread.
    """

    def __init__(self, profiles: Optional[List[IntrinsicProfile]] = None):
        self._profiles: Dict[ProfileKey, IntrinsicProfile] = {}
        self._frozen = False
        for profile in profiles or []:
            self.register(profile)

    def register(self, profile: IntrinsicProfile) -> None:
        if self._frozen:
            raise ConfigurationError("profile registry is frozen")
        validate_profile(profile)
        key = (canonical_architecture(profile.architecture), profile.element_type)
        if key in self._profiles:
            raise ConfigurationError(f"duplicate profile {key[0]}:{key[1]}")
        self._profiles[key] = profile
        logger.debug("registered profile %s:%s", *key)

    def freeze(self) -> "ProfileRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def find(self, architecture: str, element_type: str) -> Optional[IntrinsicProfile]:
        key = (canonical_architecture(architecture), canonical_element_name(element_type))
        return self._profiles.get(key)

    def lookup(self, architecture: str, element_type: str) -> IntrinsicProfile:
        """Return the profile or raise ProfileNotFoundError."""
        profile = self.find(architecture, element_type)
        if profile is None:
            raise ProfileNotFoundError(architecture, element_type)
        return profile

    def keys(self) -> List[ProfileKey]:
        return list(self._profiles)

    def architectures(self) -> List[str]:
        return list(dict.fromkeys(arch for arch, _ in self._profiles))

    def __contains__(self, key: ProfileKey) -> bool:
        return self.find(*key) is not None

    def __iter__(self) -> Iterator[IntrinsicProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    @classmethod
    def default(cls) -> "ProfileRegistry":
        """The shared, frozen default catalog."""
        return default_registry()


def build_default_registry() -> ProfileRegistry:
    return ProfileRegistry(neon_profiles() + x86_profiles()).freeze()


@lru_cache(maxsize=None)
def default_registry() -> ProfileRegistry:
    """Process-wide default catalog, built on first use."""
    return build_default_registry()
