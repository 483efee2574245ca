"""
FastAPI Web Service for the Task Recommender

Provides RESTful endpoints for:
- Getting the next recommended action for a user
- Recording completion, rejection and organic-selection feedback
- Warm-starting a model (synthetic calibration, historical replay)
- Model statistics and service monitoring
"""

import logging
from dataclasses import asdict
from datetime import datetime, tzinfo
from typing import Any, Dict, List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from taskweave import __version__
from taskweave.categories import get_default_value
from taskweave.config.settings import Settings, get_settings, validate_settings
from taskweave.models.entities import ContextSnapshot, Tag, Task, Vital
from taskweave.services.model_store import ModelStore
from taskweave.services.recommendation_engine import EngineMetrics, RecommendationEngine
from taskweave.services.repositories import build_repository
from taskweave.services.scenario_generator import CalibrationUnavailableError, OpenAIScenarioGenerator

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Taskweave Recommender API",
    description="Next-action recommendations using a contextual bandit",
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ServiceState:
    """Everything the endpoints share, built once from settings."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.config = settings.bandit_config()
        self.store = ModelStore(build_repository(settings), self.config)
        self.generator = OpenAIScenarioGenerator(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            n_scenarios=settings.calibration_scenarios,
        )
        self.metrics = EngineMetrics()
        self.engines: Dict[str, RecommendationEngine] = {}

    def engine(self, user_id: str) -> RecommendationEngine:
        if user_id not in self.engines:
            self.engines[user_id] = RecommendationEngine(
                self.store.for_user(user_id),
                config=self.config,
                generator=self.generator,
                metrics=self.metrics,
            )
        return self.engines[user_id]


# Global service state
service_state: Optional[ServiceState] = None


def configure_logging(settings: Settings):
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def configure(settings: Settings = None) -> ServiceState:
    """(Re)build the shared service state from settings."""
    global service_state
    settings = settings or get_settings()
    validate_settings(settings)
    service_state = ServiceState(settings)
    logger.info(f"Recommender configured with '{settings.model_store_backend}' model store")
    return service_state


def get_state() -> ServiceState:
    if service_state is None:
        return configure()
    return service_state


def _wall_clock(value: Optional[datetime], tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """
    Express a timestamp as naive wall-clock time in the caller's offset.

    The engine reads hours of the day straight off its datetimes, so every
    aware timestamp is shifted into the offset of the request's current time
    (or the server's local zone when the request carries none) before the
    offset is dropped. Naive timestamps are taken as already local.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(tz).replace(tzinfo=None)


def _request_now(current_time: Optional[datetime]) -> datetime:
    if current_time is None:
        return datetime.now()
    return current_time.replace(tzinfo=None)


def _offset(current_time: Optional[datetime]) -> Optional[tzinfo]:
    return current_time.tzinfo if current_time is not None else None


# Pydantic models for request/response
class TaskPayload(BaseModel):
    id: str = Field(..., description="Task identifier")
    title: str = Field(..., description="Task title")
    category: str = Field("", description="Category name or tag id")
    duration: int = Field(30, ge=0, description="Planned duration in minutes")
    energy: str = Field(get_default_value("energy_level"), description="Energy requirement (Low/Medium/High)")
    created_at: datetime = Field(..., description="Creation time")
    due_date: Optional[datetime] = Field(None, description="Deadline")
    completed_at: Optional[datetime] = Field(None, description="Completion time")
    archived_at: Optional[datetime] = Field(None, description="Archive time")
    actual_duration: Optional[float] = Field(None, description="Seconds actually spent")
    blocked_by: List[str] = Field(default_factory=list, description="Ids of blocking tasks")
    status: str = Field(get_default_value("task_status"), description="Task status (active/completed/archived)")

    def to_entity(self, tz: Optional[tzinfo] = None) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            category=self.category,
            duration=self.duration,
            energy=self.energy,
            created_at=_wall_clock(self.created_at, tz),
            due_date=_wall_clock(self.due_date, tz),
            completed_at=_wall_clock(self.completed_at, tz),
            archived_at=_wall_clock(self.archived_at, tz),
            actual_duration=self.actual_duration,
            blocked_by=list(self.blocked_by),
            status=self.status,
        )


class TagPayload(BaseModel):
    id: str
    name: str
    color: str = ""


class VitalPayload(BaseModel):
    id: str
    timestamp: datetime
    type: str = Field(get_default_value("vital_type"), description="Vital type (mood/focus/journal/breathe)")
    value: Union[float, str]

    def to_entity(self, tz: Optional[tzinfo] = None) -> Vital:
        return Vital(id=self.id, timestamp=_wall_clock(self.timestamp, tz), type=self.type, value=self.value)


class ContextPayload(BaseModel):
    current_time: Optional[datetime] = Field(None, description="Defaults to the server time")
    energy: float = Field(..., ge=0, le=100, description="User energy (0-100)")
    available_minutes: int = Field(60, ge=0, description="Free minutes right now")
    tasks: List[TaskPayload] = Field(default_factory=list, description="Active tasks")
    tags: List[TagPayload] = Field(default_factory=list)
    completed_tasks: List[TaskPayload] = Field(default_factory=list, description="Recent completions")
    backlog_count: Optional[int] = Field(None, description="Defaults to the number of active tasks")
    environment: Optional[Dict[str, Any]] = None

    def offset(self) -> Optional[tzinfo]:
        return _offset(self.current_time)

    def to_entity(self) -> ContextSnapshot:
        tz = self.offset()
        tasks = [task.to_entity(tz) for task in self.tasks]
        return ContextSnapshot(
            current_time=_request_now(self.current_time),
            energy=self.energy,
            available_minutes=self.available_minutes,
            tasks=tasks,
            tags=[Tag(id=tag.id, name=tag.name, color=tag.color) for tag in self.tags],
            completed_tasks=[task.to_entity(tz) for task in self.completed_tasks],
            backlog_count=self.backlog_count if self.backlog_count is not None else len(tasks),
            environment=self.environment,
        )


class SuggestionResponse(BaseModel):
    suggestion: Optional[Dict[str, Any]]
    strategy: str
    response_time: float
    timestamp: datetime


class CompletionRequest(BaseModel):
    context: ContextPayload
    strategy: str = Field(..., description="Strategy that produced the suggestion")
    success: bool = Field(True, description="False when the task was abandoned")


class RejectionRequest(BaseModel):
    context: ContextPayload
    strategy: str = Field(..., description="Strategy that produced the suggestion")


class OrganicSelectionRequest(BaseModel):
    task: TaskPayload
    context: ContextPayload


class CalibrationRequest(BaseModel):
    current_time: Optional[datetime] = Field(None, description="Caller's local time; defaults to the server time")
    tasks: List[TaskPayload] = Field(default_factory=list, description="Current backlog")


class RecalibrationRequest(BaseModel):
    current_time: Optional[datetime] = Field(None, description="Caller's local time; its offset localises the history")
    tasks: List[TaskPayload] = Field(default_factory=list, description="All tasks, active and finished")
    vitals: List[VitalPayload] = Field(default_factory=list, description="Wellbeing log")


class FeedbackResponse(BaseModel):
    success: bool
    message: str
    timestamp: datetime


class TrainingResponse(BaseModel):
    success: bool
    processed: int
    message: str
    timestamp: datetime


class ServiceMetrics(BaseModel):
    total_suggestions: int
    empty_suggestions: int
    strategy_counts: Dict[str, int]
    completions: int
    failed_completions: int
    rejections: int
    organic_selections: int
    avg_response_time: float


@app.on_event("startup")
async def startup_event():
    """Configure logging and the shared service state on startup."""
    try:
        settings = get_settings()
        configure_logging(settings)
        if service_state is None:
            configure(settings)
        logger.info("Recommendation service initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize recommendation service: {e}")
        raise


@app.get("/")
async def root():
    """Service banner."""
    return {
        "message": "Taskweave Recommender API",
        "version": __version__,
        "status": "healthy",
        "timestamp": datetime.now()
    }


@app.post("/users/{user_id}/suggestion", response_model=SuggestionResponse)
async def get_suggestion(user_id: str, request: ContextPayload, state: ServiceState = Depends(get_state)):
    """
    Get the next recommended action.

    The response carries no suggestion when no strategy applies (strategy
    "None") or when the model prefers to recommend nothing ("Status Quo").
    """
    start_time = datetime.now()

    try:
        result = await state.engine(user_id).generate_suggestion(request.to_entity())
        response_time = (datetime.now() - start_time).total_seconds()

        logger.info(f"Suggested '{result.strategy}' for user {user_id}")

        return SuggestionResponse(
            suggestion=asdict(result.suggestion) if result.suggestion else None,
            strategy=result.strategy,
            response_time=response_time,
            timestamp=datetime.now()
        )

    except Exception as e:
        logger.error(f"Error generating suggestion: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate suggestion: {str(e)}")


@app.post("/users/{user_id}/feedback/completion", response_model=FeedbackResponse)
async def record_completion(user_id: str, request: CompletionRequest, state: ServiceState = Depends(get_state)):
    """Record that a suggestion was acted on (finished or abandoned)."""
    try:
        applied = await state.engine(user_id).log_completion(
            request.context.to_entity(), request.strategy, request.success
        )
        outcome = "completed" if request.success else "abandoned"
        return FeedbackResponse(
            success=applied,
            message=f"Recorded {outcome} '{request.strategy}'" if applied else f"Unknown strategy: {request.strategy}",
            timestamp=datetime.now()
        )

    except Exception as e:
        logger.error(f"Error recording completion: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to record completion: {str(e)}")


@app.post("/users/{user_id}/feedback/rejection", response_model=FeedbackResponse)
async def record_rejection(user_id: str, request: RejectionRequest, state: ServiceState = Depends(get_state)):
    """Record that a suggestion was dismissed."""
    try:
        applied = await state.engine(user_id).log_rejection(request.context.to_entity(), request.strategy)
        return FeedbackResponse(
            success=applied,
            message=f"Recorded rejection of '{request.strategy}'" if applied else f"Unknown strategy: {request.strategy}",
            timestamp=datetime.now()
        )

    except Exception as e:
        logger.error(f"Error recording rejection: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to record rejection: {str(e)}")


@app.post("/users/{user_id}/feedback/organic", response_model=FeedbackResponse)
async def record_organic_selection(user_id: str, request: OrganicSelectionRequest,
                                   state: ServiceState = Depends(get_state)):
    """Record a task the user picked without a suggestion."""
    try:
        credited = await state.engine(user_id).log_organic_selection(
            request.task.to_entity(request.context.offset()), request.context.to_entity()
        )
        return FeedbackResponse(
            success=True,
            message=f"Credited {credited} strategies",
            timestamp=datetime.now()
        )

    except Exception as e:
        logger.error(f"Error recording organic selection: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to record organic selection: {str(e)}")


@app.post("/users/{user_id}/calibrate", response_model=TrainingResponse)
async def calibrate(user_id: str, request: CalibrationRequest, state: ServiceState = Depends(get_state)):
    """Warm-start the model from synthetic scenarios built around the backlog."""
    try:
        tz = _offset(request.current_time)
        tasks = [task.to_entity(tz) for task in request.tasks]
        processed = await state.engine(user_id).calibrate(tasks, now=_request_now(request.current_time))
        return TrainingResponse(
            success=processed > 0,
            processed=processed,
            message=f"Trained on {processed} synthetic scenarios",
            timestamp=datetime.now()
        )

    except CalibrationUnavailableError as e:
        logger.warning(f"Calibration unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error calibrating model: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to calibrate model: {str(e)}")


@app.post("/users/{user_id}/recalibrate", response_model=TrainingResponse)
async def recalibrate(user_id: str, request: RecalibrationRequest, state: ServiceState = Depends(get_state)):
    """Reset the model and replay the user's completion history."""
    try:
        tz = _offset(request.current_time)
        processed = await state.engine(user_id).recalibrate_from_history(
            [task.to_entity(tz) for task in request.tasks],
            [vital.to_entity(tz) for vital in request.vitals],
        )
        return TrainingResponse(
            success=True,
            processed=processed,
            message=f"Replayed {processed} completions",
            timestamp=datetime.now()
        )

    except Exception as e:
        logger.error(f"Error replaying history: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to replay history: {str(e)}")


@app.get("/users/{user_id}/model/stats")
async def get_model_stats(user_id: str, state: ServiceState = Depends(get_state)):
    """Per-arm statistics of the user's model."""
    try:
        stats = await state.engine(user_id).get_model_statistics()
        return {
            "user_id": user_id,
            "arms": {str(arm_id): arm_stats for arm_id, arm_stats in stats.items()},
            "timestamp": datetime.now()
        }
    except Exception as e:
        logger.error(f"Error getting model statistics: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get model statistics: {str(e)}")


@app.get("/metrics", response_model=ServiceMetrics)
async def get_metrics(state: ServiceState = Depends(get_state)):
    """
    Get performance metrics for the recommendation service.

    Returns metrics including:
    - Total suggestions and how often each strategy was chosen
    - Feedback counts by kind
    - Average response time
    """
    try:
        return ServiceMetrics(**state.metrics.snapshot())

    except Exception as e:
        logger.error(f"Error getting metrics: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get metrics: {str(e)}")


@app.get("/health")
async def health_check():
    """Comprehensive health check endpoint."""
    try:
        state = get_state()
        metrics = state.metrics.snapshot()

        return {
            "status": "healthy",
            "recommendation_engine": "operational",
            "model_store": state.settings.model_store_backend,
            "calibration": "available" if state.generator.is_available() else "unavailable",
            "total_suggestions": metrics['total_suggestions'],
            "avg_response_time": metrics['avg_response_time'],
            "timestamp": datetime.now()
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
            "timestamp": datetime.now()
        }


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
