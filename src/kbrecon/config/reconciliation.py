"""Batch and circuit-breaker tuning."""

from __future__ import annotations

from dataclasses import dataclass, field

from kbrecon.domain.reconciliation.circuit import DEFAULT_COOLDOWN_SECONDS, DEFAULT_FAILURE_THRESHOLD
from kbrecon.domain.reconciliation.pacing import PacingPolicy

from .env import env_float, env_int

DEFAULT_DATASET_WINDOW = 3
DEFAULT_COLUMN_WINDOW = 5


@dataclass(frozen=True, slots=True)
class BatchConfig:
    dataset_window_size: int = DEFAULT_DATASET_WINDOW
    column_window_size: int = DEFAULT_COLUMN_WINDOW
    pacing: PacingPolicy = field(default_factory=PacingPolicy)


@dataclass(frozen=True, slots=True)
class CircuitConfig:
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS


def get_batch_config() -> BatchConfig:
    return BatchConfig(
        dataset_window_size=env_int("KBRECON_DATASET_WINDOW", DEFAULT_DATASET_WINDOW, minimum=1),
        column_window_size=env_int("KBRECON_COLUMN_WINDOW", DEFAULT_COLUMN_WINDOW, minimum=1),
    )


def get_circuit_config() -> CircuitConfig:
    return CircuitConfig(
        failure_threshold=env_int(
            "KBRECON_CIRCUIT_THRESHOLD", DEFAULT_FAILURE_THRESHOLD, minimum=1
        ),
        cooldown_seconds=env_float(
            "KBRECON_CIRCUIT_COOLDOWN", DEFAULT_COOLDOWN_SECONDS, minimum=0.0
        ),
    )
