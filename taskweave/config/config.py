"""
Configuration classes for the task recommender.

These are compile-time defaults; `Settings` in settings.py can override the
tunable ones from the environment.
"""

from dataclasses import dataclass, field

# Length of the context vector produced by the feature encoder
FEATURE_DIM = 11

# Number of strategy arms in the compiled catalogue
NUM_ARMS = 13

# Schema version written to every persisted model document
MODEL_VERSION = 2


@dataclass
class RewardConfig:
    """Reward magnitudes for each feedback signal."""
    completion_success: float = 1.0  # Suggestion acted on and finished
    completion_failure: float = -0.2  # Suggestion acted on but abandoned
    rejection: float = -0.5  # Suggestion dismissed
    organic: float = 1.0  # Strategy would have picked the user's own choice
    calibration: float = 1.0  # Synthetic scenario treated as ground truth


@dataclass
class StrategyConfig:
    """Thresholds used by the strategy arms' validity and task predicates."""
    deep_flow_min_minutes: int = 30  # strictly greater than
    quick_spark_max_minutes: int = 20
    snowball_max_minutes: int = 15
    urgency_window_hours: float = 24.0
    stale_after_days: int = 14
    capacity_minutes: int = 180  # Pull Back when active minutes exceed this
    low_energy_threshold: float = 40.0  # Pull Back when energy is below this
    twilight_start_hour: int = 17
    twilight_end_hour: int = 22  # exclusive


@dataclass
class FeatureConfig:
    """Normalisation constants for the context vector."""
    queue_capacity_minutes: float = 480.0
    recency_window_hours: float = 4.0
    duration_normalisation_seconds: float = 3600.0


@dataclass
class BanditConfig:
    """Configuration for the contextual bandit model."""
    alpha: float = 0.5  # Exploration parameter
    feature_dim: int = FEATURE_DIM
    num_arms: int = NUM_ARMS
    model_version: int = MODEL_VERSION
    rewards: RewardConfig = field(default_factory=RewardConfig)
    strategies: StrategyConfig = field(default_factory=StrategyConfig)
    features: FeatureConfig = field(default_factory=FeatureConfig)
