"""
Demo script for the Taskweave Recommender

This script demonstrates the contextual bandit recommender with a sample
backlog and a simulated user who prefers short, energetic tasks in the
morning and winding down in the evening.
"""

import asyncio
import random
from datetime import datetime, timedelta
from typing import List

from taskweave.config import BanditConfig
from taskweave.models.arms import ARM_NAMES
from taskweave.models.entities import ContextSnapshot, Task, Vital
from taskweave.services.model_store import ModelStore
from taskweave.services.recommendation_engine import RecommendationEngine
from taskweave.services.repositories import InMemoryModelRepository

DEMO_USER = "demo-user"


def create_sample_tasks(now: datetime) -> List[Task]:
    """Create a sample backlog for demonstration."""
    return [
        Task(id="t1", title="Write quarterly report", category="Work", duration=90, energy="High",
             created_at=now - timedelta(days=3), due_date=now + timedelta(days=2)),
        Task(id="t2", title="Reply to emails", category="Work", duration=15, energy="High",
             created_at=now - timedelta(days=1)),
        Task(id="t3", title="Book dentist appointment", category="Personal", duration=10, energy="Low",
             created_at=now - timedelta(days=20)),
        Task(id="t4", title="Submit expenses", category="Work", duration=20, energy="Medium",
             created_at=now - timedelta(days=5), due_date=now + timedelta(hours=6)),
        Task(id="t5", title="Practice guitar", category="Hobbies", duration=45, energy="Medium",
             created_at=now - timedelta(days=2)),
        Task(id="t6", title="Evening stretch", category="Wellbeing", duration=15, energy="Low",
             created_at=now - timedelta(days=1)),
    ]


def user_reaction(strategy: str, hour: int) -> str:
    """Simulated preferences: quick wins in the morning, low gear in the evening."""
    if hour < 12 and strategy in ("Quick Spark", "The Crusher"):
        return "complete" if random.random() < 0.9 else "reject"
    if hour >= 17 and strategy in ("Twilight Ritual", "Low Gear", "Somatic Reset"):
        return "complete" if random.random() < 0.8 else "reject"
    return "reject" if random.random() < 0.7 else "complete"


async def demonstrate_learning_progression(engine: RecommendationEngine, tasks: List[Task], start: datetime):
    """Show how suggestions shift as feedback accumulates."""
    print("\n" + "=" * 60)
    print("DEMONSTRATING LEARNING PROGRESSION")
    print("=" * 60)

    for day in range(1, 11):
        picks = []
        for hour, energy in ((9, 85), (19, 35)):
            now = start.replace(hour=hour) + timedelta(days=day)
            ctx = ContextSnapshot(current_time=now, energy=energy, available_minutes=60,
                                  tasks=tasks, backlog_count=len(tasks))
            result = await engine.generate_suggestion(ctx)
            reaction = user_reaction(result.strategy, hour)
            if reaction == "complete":
                await engine.log_completion(ctx, result.strategy, success=True)
            else:
                await engine.log_rejection(ctx, result.strategy)
            title = result.suggestion.title if result.suggestion else "-"
            picks.append(f"{hour:02d}:00 {result.strategy:<16} {title:<28} [{reaction}]")

        print(f"\n--- Day {day} ---")
        for line in picks:
            print(f"  {line}")


async def demonstrate_history_replay(engine: RecommendationEngine, now: datetime):
    """Warm-start a model from completion history and mood logs."""
    print("\n" + "=" * 60)
    print("DEMONSTRATING HISTORY REPLAY")
    print("=" * 60)

    history = []
    vitals = []
    for day in range(14):
        moment = now - timedelta(days=14 - day)
        vitals.append(Vital(id=f"v{day}", timestamp=moment.replace(hour=8), type="mood", value=4))
        history.append(Task(
            id=f"h{day}", title=f"Morning email triage {day}", category="Work", duration=10, energy="High",
            created_at=moment.replace(hour=7), completed_at=moment.replace(hour=9), status="completed",
        ))

    events = await engine.recalibrate_from_history(history, vitals)
    print(f"Replayed {events} completions")


async def main():
    """Main demo function."""
    print("Taskweave Recommender - Contextual Bandit Demo")
    print("=" * 60)

    random.seed(42)
    now = datetime.now().replace(minute=0, second=0, microsecond=0)
    tasks = create_sample_tasks(now)
    print(f"Loaded {len(tasks)} tasks, {len(ARM_NAMES)} strategies")

    repository = InMemoryModelRepository()
    store = ModelStore(repository, BanditConfig())
    engine = RecommendationEngine(store.for_user(DEMO_USER))

    await demonstrate_learning_progression(engine, tasks, now)

    print("\n" + "=" * 60)
    print("MODEL STATISTICS")
    print("=" * 60)
    stats = await engine.get_model_statistics()
    ranked = sorted(stats.values(), key=lambda arm: arm['evidence'], reverse=True)
    for arm in ranked[:5]:
        print(f"{arm['name']:<18} evidence={arm['evidence']:.2f} |theta|={arm['theta_norm']:.3f}")

    metrics = engine.get_metrics()
    print(f"\nSuggestions: {metrics['total_suggestions']}, completions: {metrics['completions']}, "
          f"rejections: {metrics['rejections']}")

    await demonstrate_history_replay(engine, now)
    print(f"Stored document version: {repository.documents[DEMO_USER]['version']}")

    print("\n" + "=" * 60)
    print("DEMO COMPLETED SUCCESSFULLY!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
