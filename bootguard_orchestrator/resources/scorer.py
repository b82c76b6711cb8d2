"""
Resource scoring.

Maps a ResourceSnapshot to a score in [0, 100] and a LoadingMode. The score
starts at 100 and loses the penalties defined by the ScoringPolicy tables for
memory headroom, execution time and runtime version. The result is a pure
function of the snapshot, and more resources never yield a lower score.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from ..config.policy import ScoringPolicy, parse_version
from .data_models import ConstraintFinding, ModeExplanation, ResourceScore, ResourceSnapshot

logger = logging.getLogger(__name__)

MAX_SCORE = 100


def _format_mb(value: float) -> str:
    return f"{value:.0f}MB"


def _format_seconds(value: float) -> str:
    return f"{value:.0f}s"


class ResourceScorer:
    """Scores snapshots against a scoring policy.

    A scorer lives for one invocation; results are cached per snapshot.
    """

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or ScoringPolicy()
        self._cache: Dict[ResourceSnapshot, ResourceScore] = {}

    def score(self, snapshot: ResourceSnapshot) -> ResourceScore:
        cached = self._cache.get(snapshot)
        if cached is not None:
            return cached

        memory_penalty = self._memory_penalty(snapshot)
        execution_penalty = self._execution_penalty(snapshot)
        runtime_penalty = self._runtime_penalty(snapshot.runtime_version)

        value = MAX_SCORE - memory_penalty - execution_penalty - runtime_penalty
        value = max(0, min(MAX_SCORE, value))

        result = ResourceScore(
            score=value,
            mode=self.policy.breakpoints.mode_for(value),
            memory_penalty=memory_penalty,
            execution_penalty=execution_penalty,
            runtime_penalty=runtime_penalty,
        )
        self._cache[snapshot] = result
        logger.debug(
            "Scored snapshot: score=%s mode=%s penalties=(memory=%s, execution=%s, runtime=%s)",
            result.score, result.mode.value, memory_penalty, execution_penalty, runtime_penalty,
        )
        return result

    def explain(self, snapshot: ResourceSnapshot) -> ModeExplanation:
        """Describe each constrained dimension and what lifting it would unlock."""
        result = self.score(snapshot)
        explanation = ModeExplanation(score=result)

        if result.memory_penalty:
            best = self.policy.memory_tiers[0]
            explanation.findings.append(ConstraintFinding(
                dimension="memory",
                observed=f"{_format_mb(snapshot.memory_headroom_mb or 0.0)} free",
                penalty=result.memory_penalty,
                required=f"{_format_mb(best.min_headroom_mb)} free",
                unlocks=self._unlocked_mode(result, result.memory_penalty - best.penalty),
            ))

        if result.execution_penalty:
            best = self.policy.execution_tiers[0]
            explanation.findings.append(ConstraintFinding(
                dimension="execution_time",
                observed=_format_seconds(snapshot.execution_time_limit_seconds),
                penalty=result.execution_penalty,
                required=_format_seconds(best.min_seconds),
                unlocks=self._unlocked_mode(result, result.execution_penalty - best.penalty),
            ))

        if result.runtime_penalty:
            explanation.findings.append(ConstraintFinding(
                dimension="runtime_version",
                observed=snapshot.runtime_version,
                penalty=result.runtime_penalty,
                required=self.policy.runtime.supported,
                unlocks=self._unlocked_mode(result, result.runtime_penalty),
            ))

        return explanation

    def _unlocked_mode(self, result: ResourceScore, recovered: int):
        return self.policy.breakpoints.mode_for(min(MAX_SCORE, result.score + max(0, recovered)))

    def _memory_penalty(self, snapshot: ResourceSnapshot) -> int:
        if snapshot.memory_unlimited:
            return 0
        headroom_mb = snapshot.memory_headroom_bytes / (1024 * 1024)
        for tier in self.policy.memory_tiers:
            if headroom_mb >= tier.min_headroom_mb:
                return tier.penalty
        return self.policy.memory_tiers[-1].penalty

    def _execution_penalty(self, snapshot: ResourceSnapshot) -> int:
        if snapshot.execution_unlimited:
            return 0
        for tier in self.policy.execution_tiers:
            if snapshot.execution_time_limit_seconds >= tier.min_seconds:
                return tier.penalty
        return self.policy.execution_tiers[-1].penalty

    def _runtime_penalty(self, runtime_version: str) -> int:
        runtime = self.policy.runtime
        try:
            current: Tuple[int, ...] = parse_version(runtime_version)
        except ValueError:
            return runtime.unknown_penalty
        if current < parse_version(runtime.minimum_viable):
            return runtime.below_minimum_penalty
        if current < parse_version(runtime.supported):
            return runtime.below_supported_penalty
        return 0
