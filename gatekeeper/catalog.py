from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Union

from .models import PlanTier

DEFAULT_PLANS_PATH = Path(__file__).resolve().parent / "plans.json"


@dataclass(frozen=True)
class TierDefinition:
    """A tier's rank and the features it introduces."""

    tier: PlanTier
    rank: int
    feature_keys: FrozenSet[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "feature_keys", frozenset(self.feature_keys))


class FeatureCatalog:
    """Static tier -> feature table.

    A tier is granted its own features plus those of every tier whose rank is
    lower or equal, so higher tiers are always supersets of lower ones.
    """

    def __init__(self, tiers: Mapping[PlanTier, TierDefinition]) -> None:
        if not tiers:
            raise ValueError("plans config must define at least one plan")
        self._tiers = MappingProxyType(dict(tiers))
        grants: Dict[PlanTier, FrozenSet[str]] = {}
        for tier, definition in self._tiers.items():
            keys: set[str] = set()
            for other in self._tiers.values():
                if other.rank <= definition.rank:
                    keys.update(other.feature_keys)
            grants[tier] = frozenset(keys)
        self._grants = MappingProxyType(grants)

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "FeatureCatalog":
        config_path = Path(path) if path else DEFAULT_PLANS_PATH
        with config_path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        return cls(_parse_config(raw))

    def can_access_feature(self, plan: Union[PlanTier, str, None], feature: str) -> bool:
        """Fail-closed lookup: unknown plans map to free, unknown features are denied."""
        feature_key = str(feature or "").strip()
        if not feature_key:
            return False
        return feature_key in self.features_for(plan)

    def features_for(self, plan: Union[PlanTier, str, None]) -> FrozenSet[str]:
        tier = PlanTier.parse(plan)
        granted = self._grants.get(tier)
        if granted is None:
            return self._grants.get(PlanTier.FREE, frozenset())
        return granted

    def tier_rank(self, plan: Union[PlanTier, str, None]) -> int:
        definition = self._tiers.get(PlanTier.parse(plan))
        return definition.rank if definition else 0

    def tiers(self) -> List[PlanTier]:
        return sorted(self._tiers, key=lambda tier: (self._tiers[tier].rank, tier.value))

    def known_features(self) -> FrozenSet[str]:
        keys: set[str] = set()
        for definition in self._tiers.values():
            keys.update(definition.feature_keys)
        return frozenset(keys)


def _parse_config(raw: object) -> Dict[PlanTier, TierDefinition]:
    if not isinstance(raw, dict):
        raise ValueError("plans config must contain a top-level object")
    plans_raw = raw.get("plans")
    if not isinstance(plans_raw, dict):
        raise ValueError("plans config must include an object field named 'plans'")

    known_values = {tier.value for tier in PlanTier}
    tiers: Dict[PlanTier, TierDefinition] = {}
    for plan_key, plan_data in plans_raw.items():
        if not isinstance(plan_key, str) or not plan_key.strip():
            raise ValueError("each plan key must be a non-empty string")
        normalized_key = plan_key.strip().lower()
        if normalized_key not in known_values:
            raise ValueError(f"Unknown plan: {plan_key}")
        if not isinstance(plan_data, dict):
            raise ValueError(f"plan '{plan_key}' must be an object")

        rank = plan_data.get("rank")
        if isinstance(rank, bool) or not isinstance(rank, int) or rank < 0:
            raise ValueError(f"plan '{plan_key}' rank must be a non-negative integer")

        features = plan_data.get("features", [])
        if not isinstance(features, list):
            raise ValueError(f"plan '{plan_key}' features must be a list of feature keys")

        normalized_features: List[str] = []
        for feature_key in features:
            if not isinstance(feature_key, str) or not feature_key.strip():
                raise ValueError(f"plan '{plan_key}' has invalid feature key: {feature_key!r}")
            normalized_features.append(feature_key.strip())

        tier = PlanTier(normalized_key)
        tiers[tier] = TierDefinition(tier=tier, rank=rank, feature_keys=frozenset(normalized_features))

    if not tiers:
        raise ValueError("plans config must define at least one plan")
    return tiers


_default_catalog: Optional[FeatureCatalog] = None


def get_default_catalog() -> FeatureCatalog:
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = FeatureCatalog.from_file()
    return _default_catalog


def can_access_feature(plan: Union[PlanTier, str, None], feature: str) -> bool:
    return get_default_catalog().can_access_feature(plan, feature)
