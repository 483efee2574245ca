"""
Contextual Bandit Model for Task Recommendations

Implements disjoint LinUCB (Linear Upper Confidence Bound): one ridge
regression per strategy arm, scored with an exploration bonus proportional
to the uncertainty of its estimate.

The model is purely in-memory. Loading, saving and per-user lifecycle live
in ``taskweave.services.model_store``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from taskweave.config import BanditConfig
from taskweave.models.arms import ARM_NAMES
from taskweave.models.entities import TrainingSample

logger = logging.getLogger(__name__)


@dataclass
class ArmModel:
    """Ridge regression state for one arm: A starts at identity, b at zero."""
    A: np.ndarray
    b: np.ndarray

    @classmethod
    def fresh(cls, feature_dim: int) -> "ArmModel":
        return cls(A=np.eye(feature_dim), b=np.zeros(feature_dim))

    def to_record(self, arm_id: int) -> Dict[str, Any]:
        """Serialise with A flattened row-major."""
        return {
            'armId': arm_id,
            'A': self.A.flatten().tolist(),
            'b': self.b.tolist(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any], feature_dim: int) -> "ArmModel":
        A = np.array(record['A'], dtype=float)
        b = np.array(record['b'], dtype=float)
        if A.size != feature_dim * feature_dim or b.shape != (feature_dim,):
            raise ValueError(f"Arm record has shape A={A.shape}, b={b.shape}; expected dimension {feature_dim}")
        return cls(A=A.reshape(feature_dim, feature_dim), b=b)


@dataclass
class Prediction:
    arm_id: int
    score: float


class ContextualBandit:
    """
    Contextual Bandit using the LinUCB algorithm over a fixed arm catalogue.

    This implementation handles:
    - Ridge regression per arm (theta = A^-1 b)
    - Upper-confidence-bound scoring with exploration parameter alpha
    - Rank-1 reward updates with inversion deferred to prediction
    - Recovery from numerical failure on individual arms
    """

    def __init__(self, config: BanditConfig, arms: Dict[int, ArmModel] = None):
        self.config = config
        self.arms: Dict[int, ArmModel] = {}
        if arms is None:
            self.reset()
        else:
            self.arms = dict(arms)
            self.ensure_catalogue()

    def reset(self):
        """Reinitialise every arm to identity A and zero b."""
        self.arms = {
            arm_id: ArmModel.fresh(self.config.feature_dim)
            for arm_id in range(self.config.num_arms)
        }

    def ensure_catalogue(self) -> List[int]:
        """
        Insert fresh state for any catalogue arm missing from the model.

        Existing arms are left untouched. Returns the ids that were added.
        """
        added = []
        for arm_id in range(self.config.num_arms):
            if arm_id not in self.arms:
                self.arms[arm_id] = ArmModel.fresh(self.config.feature_dim)
                added.append(arm_id)
        return added

    def _check_features(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        if x.shape != (self.config.feature_dim,):
            raise ValueError(f"Context vector has shape {x.shape}, expected ({self.config.feature_dim},)")
        return x

    def score_arm(self, arm_id: int, x: np.ndarray) -> float:
        """
        UCB score of one arm for context x.

        Raises:
            np.linalg.LinAlgError: If A cannot be inverted or yields non-finite values
        """
        arm = self.arms[arm_id]
        A_inv = np.linalg.inv(arm.A)
        theta = A_inv @ arm.b

        expected_reward = float(theta @ x)
        # Floating point drift can push the variance slightly negative
        variance = max(0.0, float(x @ A_inv @ x))
        exploration_bonus = self.config.alpha * np.sqrt(variance)

        score = expected_reward + exploration_bonus
        if not np.isfinite(score):
            raise np.linalg.LinAlgError(f"Non-finite score for arm {arm_id}")
        return score

    def predict(self, x: np.ndarray, valid_arm_ids: Iterable[int]) -> Optional[Prediction]:
        """
        Pick the valid arm with the highest UCB score.

        Args:
            x: Context vector
            valid_arm_ids: Arms allowed in this context, in priority order

        Returns:
            Prediction for the best arm (first one wins ties), or None if
            there are no valid arms
        """
        x = self._check_features(x)
        valid_arm_ids = list(valid_arm_ids)
        if not valid_arm_ids:
            return None

        best: Optional[Prediction] = None
        for arm_id in valid_arm_ids:
            if arm_id not in self.arms:
                logger.warning(f"Skipping unknown arm {arm_id} during prediction")
                continue
            try:
                score = self.score_arm(arm_id, x)
            except np.linalg.LinAlgError as e:
                logger.warning(f"LinUCB math error on arm {arm_id}: {e}")
                continue

            if best is None or score > best.score:
                best = Prediction(arm_id=arm_id, score=score)

        if best is None:
            # Every calculation failed; fall back to the first valid arm
            logger.warning("All valid arms failed to score, falling back to the first valid arm")
            return Prediction(arm_id=valid_arm_ids[0], score=0.0)

        return best

    def update(self, x: np.ndarray, arm_id: int, reward: float) -> bool:
        """
        Apply one observed reward: A += x x^T, b += reward * x.

        Returns:
            False if the arm id is not in the catalogue, True otherwise
        """
        x = self._check_features(x)
        if arm_id not in self.arms:
            logger.warning(f"Attempting to update non-existent arm: {arm_id}")
            return False

        arm = self.arms[arm_id]
        arm.A += np.outer(x, x)
        arm.b += reward * x
        return True

    def apply_samples(self, samples: Iterable[TrainingSample]) -> int:
        """Apply the update rule to every sample; returns how many were applied."""
        applied = 0
        for sample in samples:
            if self.update(sample.features, sample.arm_id, sample.reward):
                applied += 1
        return applied

    def to_records(self) -> List[Dict[str, Any]]:
        return [self.arms[arm_id].to_record(arm_id) for arm_id in sorted(self.arms)]

    def get_arm_statistics(self) -> Dict[str, Any]:
        """Per-arm summary: coefficient norm and how much evidence A holds."""
        stats = {}
        for arm_id in sorted(self.arms):
            arm = self.arms[arm_id]
            try:
                theta_norm = float(np.linalg.norm(np.linalg.solve(arm.A, arm.b)))
            except np.linalg.LinAlgError:
                theta_norm = None
            stats[arm_id] = {
                'name': ARM_NAMES[arm_id] if arm_id < len(ARM_NAMES) else 'Unknown',
                'theta_norm': theta_norm,
                'evidence': float(np.trace(arm.A)) - self.config.feature_dim,
            }
        return stats
