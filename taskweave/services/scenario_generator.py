"""
Synthetic calibration scenarios from a language model.

The generator summarises the user's real backlog into a prompt, asks the
model for hypothetical (hour, energy, last category, strategy) situations and
hands back the raw records. Validation of individual records happens in the
trainer, so that one bad record never discards the rest.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import openai
from pydantic import BaseModel, ConfigDict, Field

from taskweave.models.entities import Task

logger = logging.getLogger(__name__)

MAX_PROMPT_TASKS = 25


class CalibrationUnavailableError(RuntimeError):
    """Raised when calibration is requested but no generator is configured."""


class CalibrationScenario(BaseModel):
    """One synthetic situation and the strategy an expert would pick for it."""
    model_config = ConfigDict(populate_by_name=True)

    hour: int = Field(ge=0, le=23)
    energy: float = Field(ge=0, le=100)
    last_category: Optional[str] = Field(default=None, alias="lastCategory")
    strategy: str


def _deadline_info(task: Task, now: datetime) -> str:
    if task.due_date is None:
        return "No Deadline"
    hours_left = (task.due_date - now).total_seconds() / 3600
    if hours_left < 0:
        return "OVERDUE"
    if hours_left < 24:
        return f"Due in {int(hours_left)}h"
    return f"Due in {int(hours_left // 24)}d"


def build_calibration_prompt(tasks: Sequence[Task], arm_names: Sequence[str],
                             now: datetime, n_scenarios: int = 30) -> str:
    """System prompt describing the strategies, the mapping rules and the backlog."""
    summaries = []
    for task in list(tasks)[:MAX_PROMPT_TASKS]:
        age_days = int((now - task.created_at).total_seconds() // 86400)
        summaries.append(
            f'- "{task.title}" [{task.category}, {task.duration}m, {task.energy}, '
            f'{_deadline_info(task, now)}, Age:{age_days}d]'
        )
    backlog = "\n".join(summaries) if summaries else "- (empty backlog)"

    return f"""You are a productivity expert algorithm training a scheduling bandit.
Available Strategies: {json.dumps(list(arm_names))}
Real-World Mapping Rules:
1. "The Crusher": MUST be selected if a task is OVERDUE or Due < 24h.
2. "The Archaeologist": Select for tasks Age > 14d with "No Deadline".
3. "Deep Flow": Morning hours (7-11), High Energy, Long tasks (>30m).
4. "Twilight Ritual": Evening (19-23), Low Energy.
5. "Momentum": When 'lastCategory' matches the chosen task's category.
6. "Palette Cleanser": When 'lastCategory' is different (good for preventing burnout).
7. "Quick Spark": High Energy but short duration (<20m).
User's Actual Backlog:
{backlog}
Task: Generate {n_scenarios} realistic scenarios covering the user's specific tasks.
For each scenario:
- Define a hypothetical hour (0-23) and energy (0-100).
- Optionally define a 'lastCategory' (Work, Personal, etc.) to simulate context switching.
- Select the ONE best strategy.
Respond with a JSON object of the form
{{"scenarios": [{{"hour": 9, "energy": 80, "lastCategory": "Work", "strategy": "Deep Flow"}}]}}"""


def parse_scenario_payload(content: str) -> List[Dict[str, Any]]:
    """
    Extract the scenario records from a model response.

    Accepts either a bare JSON array or an object with a ``scenarios`` list.

    Raises:
        ValueError: If the content is not JSON or holds no scenario list
    """
    payload = json.loads(content)
    if isinstance(payload, dict):
        payload = payload.get("scenarios")
    if not isinstance(payload, list):
        raise ValueError("Response does not contain a scenario list")
    return [record for record in payload if isinstance(record, dict)]


class OpenAIScenarioGenerator:
    """Calibration scenarios from the OpenAI chat completions API."""

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini", n_scenarios: int = 30,
                 client: Optional[openai.AsyncOpenAI] = None):
        self.model = model
        self.n_scenarios = n_scenarios
        if client is not None:
            self.client = client
        else:
            self.client = openai.AsyncOpenAI(api_key=api_key) if api_key else None

    def is_available(self) -> bool:
        return self.client is not None

    async def generate(self, tasks: Sequence[Task], arm_names: Sequence[str],
                       now: datetime) -> List[Dict[str, Any]]:
        """
        Ask the model for scenarios.

        Returns an empty list when the call fails or the response cannot be
        parsed; the caller treats that as "nothing to train on".
        """
        if self.client is None:
            raise CalibrationUnavailableError("Scenario generator is not configured")

        system_prompt = build_calibration_prompt(tasks, arm_names, now, self.n_scenarios)
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": "Generate the training data JSON."},
                ],
            )
            content = completion.choices[0].message.content or "{}"
            records = parse_scenario_payload(content)
        except (openai.OpenAIError, ValueError) as e:
            logger.error(f"Calibration scenario generation failed: {e}")
            return []

        logger.info(f"Received {len(records)} calibration scenarios")
        return records
