"""
Tier Classifier

Purpose
-------
Pure mapping from a member's point total to a Tier, the criteria-ratio
rule that suggests a tier for a self-rating, and the reward table that
turns an approved tier into points.

Responsibilities
----------------
- ``classify(total_points, thresholds)``: POOR < 400 <= AVERAGE < 600 <= GOOD
  < 800 <= EXCELLENT by default; total over all integers and monotonic
- ``suggest_tier(met, total, ratios)``: EXCELLENT >= 0.90, GOOD >= 0.75,
  AVERAGE >= 0.60, otherwise POOR; zero criteria counts as ratio 0
- ``reward_points_for(tier, rewards)``: 10 / 5 / 2 / 1 by default
- ``TierPolicy``: reads the current values from ConfigManager so an
  administrator override applies to every caller at once

Non-Responsibilities
--------------------
- Computing totals (LedgerService)
- Persisting anything
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import TYPE_CHECKING, Any, Dict, Mapping

from merit.core.config.errors import ConfigValidationError
from merit.database.models.enums import Tier

if TYPE_CHECKING:
    from merit.core.config.manager import ConfigManager


# ============================================================================
# VALUE OBJECTS
# ============================================================================


def _require_mapping(data: Any, name: str) -> None:
    if not isinstance(data, Mapping):
        raise ConfigValidationError(f"{name} settings must be a mapping, got {type(data).__name__}")


@dataclass(frozen=True)
class TierThresholds:
    """Inclusive lower bounds of AVERAGE, GOOD and EXCELLENT."""

    average: int = 400
    good: int = 600
    excellent: int = 800

    def __post_init__(self) -> None:
        for name in ("average", "good", "excellent"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigValidationError(f"Tier threshold '{name}' must be an integer")
        if not (self.average < self.good < self.excellent):
            raise ConfigValidationError(
                "Tier thresholds must be strictly ascending: "
                f"average={self.average}, good={self.good}, excellent={self.excellent}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TierThresholds":
        _require_mapping(data, "TierThresholds")
        default = cls()
        return cls(
            average=data.get("average", default.average),
            good=data.get("good", default.good),
            excellent=data.get("excellent", default.excellent),
        )

    def to_dict(self) -> Dict[str, int]:
        return {"average": self.average, "good": self.good, "excellent": self.excellent}


@dataclass(frozen=True)
class SuggestionRatios:
    """Minimum met/total ratios for AVERAGE, GOOD and EXCELLENT suggestions."""

    average: float = 0.60
    good: float = 0.75
    excellent: float = 0.90

    def __post_init__(self) -> None:
        for name in ("average", "good", "excellent"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigValidationError(f"Suggestion ratio '{name}' must be a number")
            if not 0 <= value <= 1:
                raise ConfigValidationError(f"Suggestion ratio '{name}' must be within [0, 1]")
        if not (self.average < self.good < self.excellent):
            raise ConfigValidationError("Suggestion ratios must be strictly ascending")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SuggestionRatios":
        _require_mapping(data, "SuggestionRatios")
        default = cls()
        return cls(
            average=data.get("average", default.average),
            good=data.get("good", default.good),
            excellent=data.get("excellent", default.excellent),
        )


@dataclass(frozen=True)
class RewardTable:
    """Points credited when a self-rating is approved at a given tier."""

    poor: int = 1
    average: int = 2
    good: int = 5
    excellent: int = 10

    def __post_init__(self) -> None:
        for name in ("poor", "average", "good", "excellent"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigValidationError(f"Reward for '{name}' must be a positive integer")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RewardTable":
        _require_mapping(data, "RewardTable")
        default = cls()
        return cls(
            poor=data.get("poor", default.poor),
            average=data.get("average", default.average),
            good=data.get("good", default.good),
            excellent=data.get("excellent", default.excellent),
        )

    def points_for(self, tier: Tier) -> int:
        return getattr(self, tier.value.lower())


DEFAULT_THRESHOLDS = TierThresholds()
DEFAULT_RATIOS = SuggestionRatios()
DEFAULT_REWARDS = RewardTable()


# ============================================================================
# PURE FUNCTIONS
# ============================================================================


def classify(total_points: int, thresholds: TierThresholds = DEFAULT_THRESHOLDS) -> Tier:
    """
    Map a point total to its tier.

    >>> classify(650)
    <Tier.GOOD: 'GOOD'>
    >>> classify(-20)
    <Tier.POOR: 'POOR'>
    """
    if total_points >= thresholds.excellent:
        return Tier.EXCELLENT
    if total_points >= thresholds.good:
        return Tier.GOOD
    if total_points >= thresholds.average:
        return Tier.AVERAGE
    return Tier.POOR


def suggest_tier(met_count: int, total_count: int, ratios: SuggestionRatios = DEFAULT_RATIOS) -> Tier:
    """Tier suggested by the share of criteria marked met."""
    if total_count <= 0:
        return Tier.POOR

    # Exact rational comparison so 9/10 meets a 0.90 cut-off
    ratio = Fraction(met_count, total_count)
    if ratio >= Fraction(str(ratios.excellent)):
        return Tier.EXCELLENT
    if ratio >= Fraction(str(ratios.good)):
        return Tier.GOOD
    if ratio >= Fraction(str(ratios.average)):
        return Tier.AVERAGE
    return Tier.POOR


def reward_points_for(tier: Tier, rewards: RewardTable = DEFAULT_REWARDS) -> int:
    return rewards.points_for(tier)


# ============================================================================
# CONFIG-BACKED POLICY
# ============================================================================


class TierPolicy:
    """
    Current tier settings read from ConfigManager on every access.

    Keys: ``tiers.thresholds``, ``rating.suggested_tier_ratios``,
    ``rating.reward_points``.
    """

    def __init__(self, config_manager: ConfigManager) -> None:
        self._config = config_manager

    @property
    def thresholds(self) -> TierThresholds:
        return TierThresholds.from_mapping(self._config.get("tiers.thresholds", {}) or {})

    @property
    def ratios(self) -> SuggestionRatios:
        return SuggestionRatios.from_mapping(
            self._config.get("rating.suggested_tier_ratios", {}) or {}
        )

    @property
    def rewards(self) -> RewardTable:
        return RewardTable.from_mapping(self._config.get("rating.reward_points", {}) or {})

    def classify(self, total_points: int) -> Tier:
        return classify(total_points, self.thresholds)

    def suggest(self, met_count: int, total_count: int) -> Tier:
        return suggest_tier(met_count, total_count, self.ratios)

    def reward_points_for(self, tier: Tier) -> int:
        return reward_points_for(tier, self.rewards)


def register_config_validators(config_manager: Any) -> None:
    """Reject administrator overrides that would break the tier rules."""
    config_manager.register_validator("tiers.thresholds", TierThresholds.from_mapping)
    config_manager.register_validator(
        "rating.suggested_tier_ratios", SuggestionRatios.from_mapping
    )
    config_manager.register_validator("rating.reward_points", RewardTable.from_mapping)
