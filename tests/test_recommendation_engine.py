"""End-to-end tests for the recommendation engine."""

import asyncio
from datetime import timedelta

import numpy as np

from conftest import NOW, CountingRepository
from taskweave.models.arms import ArmRegistry, StrategyArm
from taskweave.services.model_store import ModelStore
from taskweave.services.recommendation_engine import EngineMetrics, RecommendationEngine


class EmptyRegistry(ArmRegistry):
    def valid_arm_ids(self, ctx):
        return []


def _engine(repository, config, **kwargs) -> RecommendationEngine:
    return RecommendationEngine(ModelStore(repository, config).for_user("u1"), **kwargs)


def test_high_energy_morning_suggests_deep_flow(repository, config, make_task, make_context):
    engine = _engine(repository, config)
    task = make_task("t1", energy="High", duration=45)
    ctx = make_context(tasks=[task], energy=85)

    assert StrategyArm.DEEP_FLOW in engine.registry.valid_arm_ids(ctx)
    result = asyncio.run(engine.generate_suggestion(ctx))

    assert result.strategy == "Deep Flow"
    assert result.suggestion.task_id == "t1"
    assert result.suggestion.estimated_duration == 45
    assert repository.saves == 0


def test_rejection_steers_away_from_strategy(repository, config, make_task, make_context):
    engine = _engine(repository, config)
    ctx = make_context(tasks=[make_task("t1", energy="High", duration=45)], energy=85)

    async def scenario():
        first = await engine.generate_suggestion(ctx)
        await engine.log_rejection(ctx, first.strategy)
        return await engine.generate_suggestion(ctx)

    result = asyncio.run(scenario())
    assert result.strategy == "Somatic Reset"
    assert result.suggestion.type == "wellbeing"


def test_status_quo_returns_no_suggestion(repository, config, make_context):
    engine = _engine(repository, config)
    ctx = make_context(energy=50)

    async def scenario():
        for _ in range(5):
            await engine.log_completion(ctx, "Status Quo", success=True)
        return await engine.generate_suggestion(ctx)

    result = asyncio.run(scenario())
    assert result.strategy == "Status Quo"
    assert result.suggestion is None


def test_no_valid_strategy(repository, config, make_context):
    engine = _engine(repository, config, registry=EmptyRegistry())
    result = asyncio.run(engine.generate_suggestion(make_context()))
    assert result.suggestion is None
    assert result.strategy == "None"


def test_completion_rewards(repository, config, make_context):
    engine = _engine(repository, config)
    ctx = make_context()
    x = engine._vector(ctx)

    asyncio.run(engine.log_completion(ctx, "Cognitive Reset", success=True))
    np.testing.assert_allclose(repository.documents["u1"]['arms'][7]['b'], x)

    asyncio.run(engine.log_completion(ctx, "Cognitive Reset", success=False))
    np.testing.assert_allclose(repository.documents["u1"]['arms'][7]['b'], 0.8 * x)


def test_unknown_strategy_feedback_is_ignored(repository, config, make_context):
    engine = _engine(repository, config)
    assert asyncio.run(engine.log_rejection(make_context(), "Fallback")) is False
    assert asyncio.run(engine.log_completion(make_context(), "", success=True)) is False
    assert repository.saves == 0


def test_organic_selection_updates_every_matching_arm_in_one_write(config, make_task, make_context):
    repository = CountingRepository()
    engine = _engine(repository, config)
    last = make_task("done", category="Work", completed_at=NOW - timedelta(minutes=30))
    chosen = make_task("chosen", category="Work", energy="High", duration=60)
    ctx = make_context(tasks=[chosen], completed=[last], energy=90)

    credited = asyncio.run(engine.log_organic_selection(chosen, ctx))

    assert credited == 2
    assert repository.saves == 1
    x = engine._vector(ctx)
    arms = repository.documents["u1"]['arms']
    np.testing.assert_allclose(arms[StrategyArm.DEEP_FLOW]['b'], x)
    np.testing.assert_allclose(arms[StrategyArm.MOMENTUM]['b'], x)
    assert all(value == 0.0 for value in arms[StrategyArm.QUICK_SPARK]['b'])


def test_organic_selection_matching_nothing_does_not_write(repository, config, make_task, make_context):
    engine = _engine(repository, config)
    chosen = make_task("chosen", energy="Medium", duration=25)
    assert asyncio.run(engine.log_organic_selection(chosen, make_context(tasks=[chosen]))) == 0
    assert repository.saves == 0


def test_metrics_are_shared_across_engines(repository, config, make_context):
    metrics = EngineMetrics()
    store = ModelStore(repository, config)
    first = RecommendationEngine(store.for_user("a"), metrics=metrics)
    second = RecommendationEngine(store.for_user("b"), metrics=metrics)
    ctx = make_context()

    async def scenario():
        await first.generate_suggestion(ctx)
        await second.generate_suggestion(ctx)
        await second.log_rejection(ctx, "Somatic Reset")

    asyncio.run(scenario())
    snapshot = first.get_metrics()
    assert snapshot['total_suggestions'] == 2
    assert snapshot['strategy_counts'] == {"Somatic Reset": 2}
    assert snapshot['rejections'] == 1
    assert snapshot['avg_response_time'] >= 0.0


def test_model_statistics(repository, config, make_context):
    engine = _engine(repository, config)
    stats = asyncio.run(engine.get_model_statistics())
    assert len(stats) == 13
    assert stats[12]['name'] == "Twilight Ritual"
