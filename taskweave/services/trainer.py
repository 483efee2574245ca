"""
Offline training for a user's bandit model.

Three sources of training samples:
- Synthetic calibration: scenarios from a language model, used as a warm start
- Historical replay: the user's completion history, relived event by event
- Inverse learning: credit every strategy that would have picked a task the
  user chose on their own (shared by replay and live organic feedback)
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from pydantic import ValidationError

from taskweave.config import BanditConfig
from taskweave.models.arms import ARM_NAMES, ArmRegistry, arm_id_for_name
from taskweave.models.entities import ContextSnapshot, Task, TrainingSample, Vital
from taskweave.models.features import build_context_vector
from taskweave.services.model_store import UserModelHandle
from taskweave.services.scenario_generator import (
    CalibrationScenario,
    CalibrationUnavailableError,
)
from taskweave.utils import normalise_energy

logger = logging.getLogger(__name__)

DEFAULT_REPLAY_ENERGY = 75.0
SYNTHETIC_AVAILABLE_MINUTES = 60
SYNTHETIC_LAST_TASK_MINUTES = 30
SYNTHETIC_LAST_TASK_GAP = timedelta(minutes=15)


class Trainer:
    """Builds training samples for one user and applies them in a single write."""

    def __init__(self, handle: UserModelHandle, registry: ArmRegistry = None,
                 generator=None, config: BanditConfig = None):
        self.handle = handle
        self.config = config or handle.config
        self.registry = registry or ArmRegistry(self.config.strategies)
        self.generator = generator

    def _vector(self, ctx: ContextSnapshot):
        return build_context_vector(ctx, self.config.features, self.config.strategies)

    def organic_samples(self, task: Task, ctx: ContextSnapshot) -> List[TrainingSample]:
        """One positive sample per valid strategy whose predicate accepts ``task``."""
        x = self._vector(ctx)
        reward = self.config.rewards.organic
        return [
            TrainingSample(features=x, arm_id=arm_id, reward=reward)
            for arm_id in self.registry.matching_arm_ids(task, ctx)
        ]

    # ------------------------------------------------------------------
    # Synthetic calibration
    # ------------------------------------------------------------------

    def _scenario_context(self, scenario: CalibrationScenario, tasks: Sequence[Task],
                          now: datetime) -> ContextSnapshot:
        moment = now.replace(hour=scenario.hour, minute=0, second=0, microsecond=0)

        completed = []
        if scenario.last_category:
            completed.append(Task(
                id='synth-last',
                title='Synthetic Last Task',
                category=scenario.last_category,
                duration=SYNTHETIC_LAST_TASK_MINUTES,
                energy='Medium',
                created_at=moment - SYNTHETIC_LAST_TASK_GAP,
                completed_at=moment - SYNTHETIC_LAST_TASK_GAP,
                actual_duration=SYNTHETIC_LAST_TASK_MINUTES * 60,
                status='completed',
            ))

        return ContextSnapshot(
            current_time=moment,
            energy=scenario.energy,
            available_minutes=SYNTHETIC_AVAILABLE_MINUTES,
            tasks=list(tasks),
            completed_tasks=completed,
            backlog_count=len(tasks),
        )

    def calibration_samples(self, records: Sequence[dict], tasks: Sequence[Task],
                            now: datetime) -> List[TrainingSample]:
        """Turn raw scenario records into samples, skipping any that are malformed."""
        samples = []
        for record in records:
            try:
                scenario = CalibrationScenario.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Skipping malformed calibration scenario {record}: {e.error_count()} errors")
                continue

            arm_id = arm_id_for_name(scenario.strategy)
            if arm_id is None:
                logger.warning(f"Skipping calibration scenario with unknown strategy: {scenario.strategy}")
                continue

            ctx = self._scenario_context(scenario, tasks, now)
            samples.append(TrainingSample(
                features=self._vector(ctx),
                arm_id=arm_id,
                reward=self.config.rewards.calibration,
            ))
        return samples

    async def calibrate(self, tasks: Sequence[Task], now: Optional[datetime] = None) -> int:
        """
        Warm-start the model from synthetic scenarios built around ``tasks``.

        Returns:
            Number of samples trained (0 means nothing was written)

        Raises:
            CalibrationUnavailableError: If no scenario generator is configured
        """
        if self.generator is None or not self.generator.is_available():
            raise CalibrationUnavailableError("Scenario generator is not configured")

        now = now or datetime.now()
        records = await self.generator.generate(tasks, ARM_NAMES, now)
        samples = self.calibration_samples(records, tasks, now)
        if not samples:
            logger.info(f"No usable calibration scenarios for user {self.handle.user_id}")
            return 0

        await self.handle.batch_train(samples)
        logger.info(f"Calibrated user {self.handle.user_id} with {len(samples)} synthetic samples")
        return len(samples)

    # ------------------------------------------------------------------
    # Historical replay
    # ------------------------------------------------------------------

    @staticmethod
    def _mood_readings(vitals: Sequence[Vital]) -> List[tuple]:
        readings = []
        for vital in vitals:
            if vital.type != 'mood':
                continue
            try:
                readings.append((vital.timestamp, normalise_energy(vital.value)))
            except (TypeError, ValueError):
                logger.debug(f"Ignoring non-numeric mood vital {vital.id}")
        readings.sort(key=lambda reading: reading[0])
        return readings

    @staticmethod
    def _energy_before(readings: List[tuple], moment: datetime) -> float:
        energy = DEFAULT_REPLAY_ENERGY
        for timestamp, value in readings:
            if timestamp >= moment:
                break
            energy = value
        return energy

    @staticmethod
    def _active_at(tasks: Sequence[Task], moment: datetime) -> List[Task]:
        active = []
        for task in tasks:
            if task.created_at > moment:
                continue
            if task.completed_at is not None and task.completed_at < moment:
                continue
            if task.archived_at is not None and task.archived_at < moment:
                continue
            active.append(task)
        return active

    def replay_samples(self, tasks: Sequence[Task], vitals: Sequence[Vital]) -> tuple:
        """
        Relive every completion in chronological order.

        Returns:
            Tuple of (number of completion events, training samples)
        """
        completed = sorted(
            (task for task in tasks if task.status == 'completed' and task.completed_at is not None),
            key=lambda task: task.completed_at,
        )
        readings = self._mood_readings(vitals)

        samples: List[TrainingSample] = []
        for task in completed:
            moment = task.completed_at
            active = self._active_at(tasks, moment)
            ctx = ContextSnapshot(
                current_time=moment,
                energy=self._energy_before(readings, moment),
                available_minutes=SYNTHETIC_AVAILABLE_MINUTES,
                tasks=active,
                completed_tasks=[t for t in completed if t.completed_at < moment],
                backlog_count=len(active),
            )
            samples.extend(self.organic_samples(task, ctx))

        return len(completed), samples

    async def recalibrate_from_history(self, tasks: Sequence[Task], vitals: Sequence[Vital]) -> int:
        """
        Reset the model and retrain it from the user's history.

        Returns:
            Number of completion events processed
        """
        await self.handle.reset_model()
        events, samples = self.replay_samples(tasks, vitals)
        await self.handle.batch_train(samples)
        logger.info(f"Replayed {events} completions ({len(samples)} samples) for user {self.handle.user_id}")
        return events
