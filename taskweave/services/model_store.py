"""
Model Store Service

Owns the lifecycle of each user's bandit model:
- Lazy, single-flight loading on first use
- Cold start and reset when the stored feature dimension no longer matches
- Additive migration when the arm catalogue has grown
- Full-document overwrite after every mutation

Persistence problems never reach the caller. A failed load falls back to a
fresh model and a failed save is logged; at most the latest update is lost.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from taskweave.config import BanditConfig
from taskweave.models.contextual_bandit import ArmModel, ContextualBandit, Prediction
from taskweave.models.entities import TrainingSample
from taskweave.services.repositories import ModelDocument, ModelRepository

logger = logging.getLogger(__name__)


class LoadState(Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"


def serialise_model(bandit: ContextualBandit) -> ModelDocument:
    """Build the persisted document for a model."""
    return {
        'arms': bandit.to_records(),
        'updatedAt': datetime.now(timezone.utc).isoformat(),
        'version': bandit.config.model_version,
        'featureDimension': bandit.config.feature_dim,
    }


def restore_model(document: Optional[ModelDocument], config: BanditConfig) -> ContextualBandit:
    """
    Rebuild a model from a persisted document.

    Missing documents and documents written for a different feature
    dimension produce a fresh model. Arms are keyed by their stored
    ``armId``; version 1 documents (``data``/``features`` keys, no arm ids)
    are read positionally. Catalogue arms absent from the document are
    added fresh.

    Raises:
        ValueError: If the document is malformed
    """
    if document is None:
        return ContextualBandit(config)

    stored_dim = document.get('featureDimension', document.get('features', 0))
    if stored_dim != config.feature_dim:
        logger.warning(f"LinUCB dimension mismatch (stored {stored_dim}, expected {config.feature_dim}). Resetting model.")
        return ContextualBandit(config)

    records = document.get('arms', document.get('data'))
    if not isinstance(records, list):
        raise ValueError("Model document has no arm list")

    arms: Dict[int, ArmModel] = {}
    for position, record in enumerate(records):
        arm_id = int(record.get('armId', position))
        if not 0 <= arm_id < config.num_arms:
            logger.warning(f"Dropping stored arm {arm_id}, not in the catalogue")
            continue
        arms[arm_id] = ArmModel.from_record(record, config.feature_dim)

    bandit = ContextualBandit(config, arms=arms)
    added = [arm_id for arm_id in range(config.num_arms) if arm_id not in arms]
    if added:
        logger.info(f"Migrated model: added fresh state for arms {added}")
    return bandit


class UserModelHandle:
    """
    One user's bandit model plus its persistence.

    The load state is explicit: NOT_LOADED until the first call, LOADING
    while a single shared load task runs, LOADED afterwards. Every caller
    that arrives during LOADING awaits the same task.
    """

    def __init__(self, user_id: str, repository: ModelRepository, config: BanditConfig):
        self.user_id = user_id
        self.repository = repository
        self.config = config
        self.state = LoadState.NOT_LOADED
        self._pending: Optional[asyncio.Task] = None
        self._bandit: Optional[ContextualBandit] = None

    async def _load(self) -> ContextualBandit:
        try:
            document = await self.repository.load(self.user_id)
            bandit = restore_model(document, self.config)
            if document is None:
                logger.info(f"No stored model for user {self.user_id}, starting fresh")
            else:
                logger.info(f"Model loaded for user {self.user_id}")
        except Exception as e:
            logger.warning(f"Failed to load model for user {self.user_id}, using default: {e}")
            bandit = ContextualBandit(self.config)

        self._bandit = bandit
        self.state = LoadState.LOADED
        self._pending = None
        return bandit

    async def ensure_loaded(self) -> ContextualBandit:
        """Return the in-memory model, loading it on first use."""
        if self.state is LoadState.LOADED:
            return self._bandit

        if self.state is LoadState.NOT_LOADED:
            self.state = LoadState.LOADING
            self._pending = asyncio.ensure_future(self._load())

        return await asyncio.shield(self._pending)

    async def _save(self, bandit: ContextualBandit):
        try:
            await self.repository.save(self.user_id, serialise_model(bandit))
        except Exception as e:
            logger.error(f"Failed to save model for user {self.user_id}: {e}")

    async def predict(self, x: np.ndarray, valid_arm_ids: Iterable[int]) -> Optional[Prediction]:
        bandit = await self.ensure_loaded()
        return bandit.predict(x, valid_arm_ids)

    async def update(self, x: np.ndarray, arm_id: int, reward: float):
        """Apply one reward and persist the whole model."""
        bandit = await self.ensure_loaded()
        if not bandit.update(x, arm_id, reward):
            return
        await self._save(bandit)

    async def batch_train(self, samples: List[TrainingSample]) -> int:
        """Apply every sample in memory, then persist exactly once."""
        bandit = await self.ensure_loaded()
        applied = bandit.apply_samples(samples)
        await self._save(bandit)
        logger.info(f"Batch trained {applied} samples for user {self.user_id}")
        return applied

    async def reset_model(self):
        """Return every arm to identity/zero in memory; the next write persists it."""
        if self.state is LoadState.LOADING:
            await asyncio.shield(self._pending)
        if self._bandit is None:
            self._bandit = ContextualBandit(self.config)
        else:
            self._bandit.reset()
        self.state = LoadState.LOADED

    async def get_arm_statistics(self) -> Dict[int, Dict[str, Any]]:
        bandit = await self.ensure_loaded()
        return bandit.get_arm_statistics()


class ModelStore:
    """Hands out one UserModelHandle per user id."""

    def __init__(self, repository: ModelRepository, config: BanditConfig = None):
        self.repository = repository
        self.config = config or BanditConfig()
        self._handles: Dict[str, UserModelHandle] = {}

    def for_user(self, user_id: str) -> UserModelHandle:
        if user_id not in self._handles:
            self._handles[user_id] = UserModelHandle(user_id, self.repository, self.config)
        return self._handles[user_id]
