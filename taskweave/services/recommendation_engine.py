"""
Recommendation Engine Service

Composes the recommender for one user:
1. Feature encoding of the live context
2. Masking to the strategies that are possible right now
3. LinUCB selection among the valid strategies
4. Resolution of the chosen strategy into a concrete suggestion

Feedback (completion, rejection, organic selection) flows back into the same
user's model through its UserModelHandle. Training from synthetic scenarios
and from history is delegated to the Trainer.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from taskweave.config import BanditConfig
from taskweave.models.arms import NO_RECOMMENDATION, ArmRegistry, arm_id_for_name
from taskweave.models.entities import ContextSnapshot, SuggestionResult, Task, Vital
from taskweave.models.features import build_context_vector, describe_context_vector
from taskweave.services.model_store import UserModelHandle
from taskweave.services.trainer import Trainer

logger = logging.getLogger(__name__)

NO_VALID_STRATEGY = "None"


class EngineMetrics:
    """Process-wide counters shared by every user's engine."""

    def __init__(self):
        self.metrics = {
            'total_suggestions': 0,
            'empty_suggestions': 0,
            'strategy_counts': {},
            'completions': 0,
            'failed_completions': 0,
            'rejections': 0,
            'organic_selections': 0,
            'avg_response_time': 0.0,
        }

    def record_suggestion(self, strategy: str, response_time: float):
        self.metrics['total_suggestions'] += 1
        counts = self.metrics['strategy_counts']
        counts[strategy] = counts.get(strategy, 0) + 1
        self._update_avg_response_time(response_time)

    def record_feedback(self, kind: str):
        self.metrics[kind] += 1

    def _update_avg_response_time(self, response_time: float):
        """Update average response time."""
        total = self.metrics['total_suggestions']
        current_avg = self.metrics['avg_response_time']
        self.metrics['avg_response_time'] = (current_avg * (total - 1) + response_time) / total

    def snapshot(self) -> Dict[str, Any]:
        snapshot = dict(self.metrics)
        snapshot['strategy_counts'] = dict(self.metrics['strategy_counts'])
        return snapshot


class RecommendationEngine:
    """
    Contextual-bandit task recommender for a single user.

    The caller owns the UserModelHandle (one per user, usually from a
    ModelStore) and passes it in; the engine holds no hidden global state.
    """

    def __init__(self, handle: UserModelHandle, config: BanditConfig = None,
                 registry: ArmRegistry = None, generator=None, metrics: EngineMetrics = None):
        self.handle = handle
        self.config = config or handle.config
        self.registry = registry or ArmRegistry(self.config.strategies)
        self.trainer = Trainer(handle, self.registry, generator, self.config)
        self.metrics = metrics or EngineMetrics()

    def _vector(self, ctx: ContextSnapshot):
        return build_context_vector(ctx, self.config.features, self.config.strategies)

    async def generate_suggestion(self, ctx: ContextSnapshot) -> SuggestionResult:
        """
        Recommend the next action for the given context.

        Returns:
            SuggestionResult with no suggestion and strategy "None" when no
            strategy is valid, no suggestion and "Status Quo" when the model
            prefers to recommend nothing, otherwise the resolved suggestion
            and the name of the strategy that produced it
        """
        start_time = datetime.now()

        x = self._vector(ctx)
        valid_arm_ids = self.registry.valid_arm_ids(ctx)
        prediction = await self.handle.predict(x, valid_arm_ids)

        if prediction is None:
            result = SuggestionResult(suggestion=None, strategy=NO_VALID_STRATEGY)
        else:
            strategy = self.registry.name(prediction.arm_id)
            if strategy == NO_RECOMMENDATION:
                suggestion = None
            else:
                suggestion = self.registry.resolve(prediction.arm_id, ctx)
            result = SuggestionResult(suggestion=suggestion, strategy=strategy)
            logger.debug(f"User {self.handle.user_id}: {strategy} scored {prediction.score:.4f} "
                         f"for context {describe_context_vector(x)}")

        response_time = (datetime.now() - start_time).total_seconds()
        self.metrics.record_suggestion(result.strategy, response_time)
        if result.suggestion is None:
            self.metrics.record_feedback('empty_suggestions')

        return result

    async def _reward(self, ctx: ContextSnapshot, strategy: str, reward: float) -> bool:
        arm_id = arm_id_for_name(strategy)
        if arm_id is None:
            logger.warning(f"Ignoring feedback for unknown strategy: {strategy}")
            return False
        await self.handle.update(self._vector(ctx), arm_id, reward)
        return True

    async def log_completion(self, ctx: ContextSnapshot, strategy: str, success: bool = True) -> bool:
        """Reward a suggestion the user acted on; smaller penalty when it was abandoned."""
        rewards = self.config.rewards
        reward = rewards.completion_success if success else rewards.completion_failure
        applied = await self._reward(ctx, strategy, reward)
        if applied:
            self.metrics.record_feedback('completions' if success else 'failed_completions')
        return applied

    async def log_rejection(self, ctx: ContextSnapshot, strategy: str) -> bool:
        """Penalise a suggestion the user dismissed."""
        applied = await self._reward(ctx, strategy, self.config.rewards.rejection)
        if applied:
            self.metrics.record_feedback('rejections')
        return applied

    async def log_organic_selection(self, task: Task, ctx: ContextSnapshot) -> int:
        """
        Inverse learning from a task the user picked without a suggestion.

        Every valid strategy that would have recommended the task is rewarded,
        all in one write. Returns the number of strategies credited.
        """
        samples = self.trainer.organic_samples(task, ctx)
        self.metrics.record_feedback('organic_selections')
        if not samples:
            return 0
        await self.handle.batch_train(samples)
        return len(samples)

    async def calibrate(self, tasks: Sequence[Task], now: Optional[datetime] = None) -> int:
        return await self.trainer.calibrate(tasks, now)

    async def recalibrate_from_history(self, tasks: Sequence[Task], vitals: Sequence[Vital]) -> int:
        return await self.trainer.recalibrate_from_history(tasks, vitals)

    def get_metrics(self) -> Dict[str, Any]:
        """Get performance metrics."""
        return self.metrics.snapshot()

    async def get_model_statistics(self) -> Dict[int, Dict[str, Any]]:
        return await self.handle.get_arm_statistics()
