from taskweave.models.arms import ARM_NAMES, ArmRegistry, StrategyArm, pick_best
from taskweave.models.contextual_bandit import ArmModel, ContextualBandit, Prediction
from taskweave.models.entities import (
    ContextSnapshot,
    Suggestion,
    SuggestionResult,
    Tag,
    Task,
    TrainingSample,
    Vital,
)
from taskweave.models.features import build_context_vector

__all__ = [
    "ARM_NAMES",
    "ArmModel",
    "ArmRegistry",
    "ContextSnapshot",
    "ContextualBandit",
    "Prediction",
    "StrategyArm",
    "Suggestion",
    "SuggestionResult",
    "Tag",
    "Task",
    "TrainingSample",
    "Vital",
    "build_context_vector",
    "pick_best",
]
