"""
Strategy arms for the task recommender.

The catalogue is fixed: thirteen named strategies, each pairing a validity
check (is this strategy possible right now?) with a resolver (which task or
wellbeing action would it recommend?). Task-based strategies also expose a
per-task predicate, which inverse learning uses to decide whether a strategy
would have recommended a task the user picked on their own.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Callable, Dict, List, Optional

from taskweave.config import StrategyConfig
from taskweave.models.entities import ContextSnapshot, Suggestion, Task

logger = logging.getLogger(__name__)


class StrategyArm(IntEnum):
    DEEP_FLOW = 0  # High energy, long task
    QUICK_SPARK = 1  # High energy, short task
    MOMENTUM = 2  # Same category as last completion
    PALETTE_CLEANSER = 3  # Different category from last completion
    THE_CRUSHER = 4  # Due within the urgency window
    LOW_GEAR = 5  # Low energy task
    SOMATIC_RESET = 6  # Physical wellbeing break
    COGNITIVE_RESET = 7  # Mental wellbeing break
    NO_OP = 8  # No recommendation
    PULL_BACK = 9  # Capacity warning
    ARCHAEOLOGIST = 10  # Stale undated task
    SNOWBALL = 11  # Small task after a small task
    TWILIGHT_RITUAL = 12  # Low energy task in the evening


ARM_NAMES = [
    "Deep Flow", "Quick Spark", "Momentum", "Palette Cleanser",
    "The Crusher", "Low Gear", "Somatic Reset", "Cognitive Reset",
    "Status Quo", "Pull Back", "The Archaeologist", "Snowball", "Twilight Ritual",
]

NO_RECOMMENDATION = ARM_NAMES[StrategyArm.NO_OP]

TASK_PRIORITY = 10
TASK_CONFIDENCE = 85
WELLBEING_PRIORITY = 10
WELLBEING_CONFIDENCE = 90
WELLBEING_DURATION = 5
WELLBEING_SUGGESTION_ID = 'wellbeing-gen'


def arm_id_for_name(name: str) -> Optional[int]:
    """Look up an arm id by its display name; None if unknown."""
    try:
        return ARM_NAMES.index(name)
    except ValueError:
        return None


def is_blocked(task: Task, active_ids: set) -> bool:
    """A task is blocked while any of its blockers is still active."""
    return any(blocker_id in active_ids for blocker_id in task.blocked_by)


def pick_best(tasks: List[Task]) -> Optional[Task]:
    """
    Select a task in a single pass.

    A due date always beats no due date, and an earlier due date replaces the
    running best outright. When neither task has a due date, or the
    candidate's date is not earlier, the more recently created task wins.
    """
    if not tasks:
        return None

    best = tasks[0]
    for current in tasks[1:]:
        if current.due_date is not None and best.due_date is not None:
            if current.due_date < best.due_date:
                best = current
                continue
        elif current.due_date is not None and best.due_date is None:
            best = current
            continue
        elif current.due_date is None and best.due_date is not None:
            continue

        if current.created_at > best.created_at:
            best = current

    return best


def _earliest_due(tasks: List[Task]) -> Optional[Task]:
    dated = [task for task in tasks if task.due_date is not None]
    return min(dated, key=lambda task: task.due_date) if dated else None


def _oldest_created(tasks: List[Task]) -> Optional[Task]:
    return min(tasks, key=lambda task: task.created_at) if tasks else None


class StrategyState:
    """Values every strategy derives from a context snapshot, computed once."""

    def __init__(self, ctx: ContextSnapshot, config: StrategyConfig):
        self.ctx = ctx
        self.config = config
        self.now: datetime = ctx.current_time
        self.hour = ctx.current_time.hour
        self.energy = ctx.energy
        self.last = ctx.last_completed()
        self.total_minutes = sum(task.duration for task in ctx.tasks)
        self.urgent_cutoff = self.now + timedelta(hours=config.urgency_window_hours)
        self.stale_cutoff = self.now - timedelta(days=config.stale_after_days)

        active_ids = {task.id for task in ctx.tasks}
        self.unblocked = [task for task in ctx.tasks if not is_blocked(task, active_ids)]

    def is_evening(self) -> bool:
        return self.config.twilight_start_hour <= self.hour < self.config.twilight_end_hour


TaskPredicate = Callable[[Task, StrategyState], bool]


def _deep_flow(task: Task, s: StrategyState) -> bool:
    return task.energy == 'High' and task.duration > s.config.deep_flow_min_minutes


def _quick_spark(task: Task, s: StrategyState) -> bool:
    return task.energy == 'High' and task.duration <= s.config.quick_spark_max_minutes


def _momentum(task: Task, s: StrategyState) -> bool:
    return s.last is not None and task.category == s.last.category


def _palette_cleanser(task: Task, s: StrategyState) -> bool:
    return s.last is not None and task.category != s.last.category


def _crusher(task: Task, s: StrategyState) -> bool:
    return task.due_date is not None and task.due_date < s.urgent_cutoff


def _low_gear(task: Task, s: StrategyState) -> bool:
    return task.energy == 'Low'


def _archaeologist(task: Task, s: StrategyState) -> bool:
    return task.created_at < s.stale_cutoff and task.due_date is None


def _snowball(task: Task, s: StrategyState) -> bool:
    limit = s.config.snowball_max_minutes
    return s.last is not None and s.last.duration <= limit and task.duration <= limit


def _twilight(task: Task, s: StrategyState) -> bool:
    return s.is_evening() and task.energy == 'Low'


@dataclass(frozen=True)
class Arm:
    """
    One strategy in the catalogue.

    Task-based arms carry a predicate and a selector; wellbeing arms carry a
    fixed title instead. An arm with neither is the no-recommendation arm.
    """
    id: int
    name: str
    reason: str
    predicate: Optional[TaskPredicate] = None
    selector: Optional[Callable[[List[Task]], Optional[Task]]] = None
    wellbeing_title: Optional[str] = None
    always_valid: bool = False

    def is_task_arm(self) -> bool:
        return self.predicate is not None


ARM_CATALOGUE: Dict[int, Arm] = {
    int(arm.id): arm for arm in [
        Arm(StrategyArm.DEEP_FLOW, ARM_NAMES[0], "Deep Flow: Capitalize on your energy.",
            predicate=_deep_flow, selector=pick_best),
        Arm(StrategyArm.QUICK_SPARK, ARM_NAMES[1], "Quick Spark: Build momentum fast.",
            predicate=_quick_spark, selector=pick_best),
        Arm(StrategyArm.MOMENTUM, ARM_NAMES[2], "Momentum: Stay in the {category} zone.",
            predicate=_momentum, selector=pick_best),
        Arm(StrategyArm.PALETTE_CLEANSER, ARM_NAMES[3], "Palette Cleanser: Switch context to stay fresh.",
            predicate=_palette_cleanser, selector=pick_best),
        Arm(StrategyArm.THE_CRUSHER, ARM_NAMES[4], "The Crusher: Clear urgent items.",
            predicate=_crusher, selector=_earliest_due),
        Arm(StrategyArm.LOW_GEAR, ARM_NAMES[5], "Low Gear: Productive despite low energy.",
            predicate=_low_gear, selector=pick_best),
        Arm(StrategyArm.SOMATIC_RESET, ARM_NAMES[6], "Somatic Reset: Move your body to refuel.",
            wellbeing_title="Stretch & Hydrate", always_valid=True),
        Arm(StrategyArm.COGNITIVE_RESET, ARM_NAMES[7], "Cognitive Reset: Clear your mind.",
            wellbeing_title="2min Breathe", always_valid=True),
        Arm(StrategyArm.NO_OP, ARM_NAMES[8], "", always_valid=True),
        Arm(StrategyArm.PULL_BACK, ARM_NAMES[9], "Capacity Reached: Focus on current queue.",
            wellbeing_title="Review Queue"),
        Arm(StrategyArm.ARCHAEOLOGIST, ARM_NAMES[10], "The Archaeologist: Clear stagnant items.",
            predicate=_archaeologist, selector=_oldest_created),
        Arm(StrategyArm.SNOWBALL, ARM_NAMES[11], "Snowball Effect: Stack small wins.",
            predicate=_snowball, selector=pick_best),
        Arm(StrategyArm.TWILIGHT_RITUAL, ARM_NAMES[12], "Twilight Ritual: Wind down productively.",
            predicate=_twilight, selector=pick_best),
    ]
}


class ArmRegistry:
    """Evaluates the fixed strategy catalogue against a context snapshot."""

    def __init__(self, config: StrategyConfig = None):
        self.config = config or StrategyConfig()
        self.arms = ARM_CATALOGUE

    def state(self, ctx: ContextSnapshot) -> StrategyState:
        return StrategyState(ctx, self.config)

    def name(self, arm_id: int) -> str:
        return self.arms[arm_id].name

    def _is_valid(self, arm: Arm, state: StrategyState) -> bool:
        if arm.always_valid:
            return True
        if arm.id == StrategyArm.PULL_BACK:
            return (state.total_minutes > self.config.capacity_minutes
                    or state.energy < self.config.low_energy_threshold)
        return any(arm.predicate(task, state) for task in state.unblocked)

    def valid_arm_ids(self, ctx: ContextSnapshot) -> List[int]:
        """Ids of every arm whose precondition holds, in catalogue order."""
        state = self.state(ctx)
        return [arm_id for arm_id, arm in self.arms.items() if self._is_valid(arm, state)]

    def matching_arm_ids(self, task: Task, ctx: ContextSnapshot) -> List[int]:
        """
        Valid arms whose task predicate accepts ``task``.

        Used for inverse learning: these are the strategies that could have
        recommended the task the user chose.
        """
        state = self.state(ctx)
        matches = []
        for arm_id in self.valid_arm_ids(ctx):
            arm = self.arms[arm_id]
            if arm.is_task_arm() and arm.predicate(task, state):
                matches.append(arm_id)
        return matches

    def resolve(self, arm_id: int, ctx: ContextSnapshot) -> Optional[Suggestion]:
        """
        Turn a chosen arm into a concrete suggestion.

        Returns None for the no-recommendation arm, and for a task arm that
        has no qualifying candidate.
        """
        arm = self.arms.get(arm_id)
        if arm is None:
            logger.warning(f"Cannot resolve unknown arm: {arm_id}")
            return None

        if arm.wellbeing_title is not None:
            return Suggestion(
                id=WELLBEING_SUGGESTION_ID,
                type='wellbeing',
                title=arm.wellbeing_title,
                reason=arm.reason,
                priority=WELLBEING_PRIORITY,
                estimated_duration=WELLBEING_DURATION,
                confidence=WELLBEING_CONFIDENCE,
                category='Wellbeing',
                energy_requirement='Low',
            )

        if not arm.is_task_arm():
            return None

        state = self.state(ctx)
        candidates = [task for task in state.unblocked if arm.predicate(task, state)]
        chosen = arm.selector(candidates)
        if chosen is None:
            return None

        return Suggestion(
            id=str(uuid.uuid4()),
            type='task',
            title=chosen.title,
            reason=self._reason(arm, state),
            priority=TASK_PRIORITY,
            estimated_duration=chosen.duration,
            confidence=TASK_CONFIDENCE,
            task_id=chosen.id,
            category=chosen.category,
            energy_requirement=chosen.energy,
        )

    def _reason(self, arm: Arm, state: StrategyState) -> str:
        if arm.id != StrategyArm.MOMENTUM or state.last is None:
            return arm.reason
        # Categories may be tag ids; show the tag name when there is one
        label = state.last.category
        for tag in state.ctx.tags:
            if tag.id == label:
                label = tag.name
                break
        return arm.reason.format(category=label)
