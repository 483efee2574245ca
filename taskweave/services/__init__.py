from taskweave.services.model_store import LoadState, ModelStore, UserModelHandle
from taskweave.services.recommendation_engine import EngineMetrics, RecommendationEngine
from taskweave.services.repositories import (
    FileModelRepository,
    InMemoryModelRepository,
    ModelRepository,
    RedisModelRepository,
    SqlModelRepository,
    build_repository,
)
from taskweave.services.scenario_generator import (
    CalibrationUnavailableError,
    OpenAIScenarioGenerator,
)
from taskweave.services.trainer import Trainer

__all__ = [
    "CalibrationUnavailableError",
    "EngineMetrics",
    "FileModelRepository",
    "InMemoryModelRepository",
    "LoadState",
    "ModelRepository",
    "ModelStore",
    "OpenAIScenarioGenerator",
    "RecommendationEngine",
    "RedisModelRepository",
    "SqlModelRepository",
    "Trainer",
    "UserModelHandle",
    "build_repository",
]
