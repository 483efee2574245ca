"""
Domain records shared by the recommender components.

Tasks, vitals and tags are owned by external stores; the engine only reads
them. Context snapshots, suggestions and training samples are ephemeral.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import numpy as np


@dataclass
class Task:
    """A backlog task as seen by the recommender."""
    id: str
    title: str
    category: str  # Category name or tag id; may be empty
    duration: int  # Planned minutes
    energy: str  # 'Low', 'Medium' or 'High'
    created_at: datetime
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    actual_duration: Optional[float] = None  # Seconds actually spent
    blocked_by: List[str] = field(default_factory=list)
    status: str = 'active'


@dataclass
class Vital:
    """A timestamped wellbeing log entry."""
    id: str
    timestamp: datetime
    type: str
    value: Union[float, str]


@dataclass
class Tag:
    id: str
    name: str
    color: str = ''


@dataclass
class ContextSnapshot:
    """Live state supplied by the caller on every call."""
    current_time: datetime
    energy: float  # 0-100
    available_minutes: int
    tasks: List[Task]
    tags: List[Tag] = field(default_factory=list)
    completed_tasks: List[Task] = field(default_factory=list)
    backlog_count: int = 0
    environment: Optional[Dict[str, Any]] = None

    def last_completed(self) -> Optional[Task]:
        """Most recently completed task, or None."""
        if not self.completed_tasks:
            return None
        return max(self.completed_tasks, key=_completion_key)


def _completion_key(task: Task) -> float:
    return task.completed_at.timestamp() if task.completed_at else float('-inf')


@dataclass
class Suggestion:
    """A recommendation handed back to the caller. Never persisted."""
    id: str
    type: str  # 'task' or 'wellbeing'
    title: str
    reason: str
    priority: int
    estimated_duration: int
    confidence: int
    task_id: Optional[str] = None
    category: Optional[str] = None
    energy_requirement: Optional[str] = None


@dataclass
class SuggestionResult:
    suggestion: Optional[Suggestion]
    strategy: str


@dataclass
class TrainingSample:
    features: np.ndarray
    arm_id: int
    reward: float
