from taskweave.config.config import (
    FEATURE_DIM,
    MODEL_VERSION,
    NUM_ARMS,
    BanditConfig,
    FeatureConfig,
    RewardConfig,
    StrategyConfig,
)

__all__ = [
    "FEATURE_DIM",
    "MODEL_VERSION",
    "NUM_ARMS",
    "BanditConfig",
    "FeatureConfig",
    "RewardConfig",
    "StrategyConfig",
]
