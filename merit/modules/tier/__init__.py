from merit.modules.tier.classifier import (
    DEFAULT_RATIOS,
    DEFAULT_REWARDS,
    DEFAULT_THRESHOLDS,
    RewardTable,
    SuggestionRatios,
    TierPolicy,
    TierThresholds,
    classify,
    register_config_validators,
    reward_points_for,
    suggest_tier,
)

__all__ = [
    "DEFAULT_RATIOS",
    "DEFAULT_REWARDS",
    "DEFAULT_THRESHOLDS",
    "RewardTable",
    "SuggestionRatios",
    "TierPolicy",
    "TierThresholds",
    "classify",
    "register_config_validators",
    "reward_points_for",
    "suggest_tier",
]
