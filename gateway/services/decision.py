"""Payment decision strategies: random outcome or forced success."""

import logging
import random
from typing import Protocol

from gateway.config import Settings, get_settings
from gateway.constants import DEFAULT_SUCCESS_RATE

logger = logging.getLogger(__name__)


class DecisionStrategy(Protocol):
    """Decides whether a payment succeeds. Called exactly once per payment."""

    def decide(self) -> bool:
        ...


class RandomDecision:
    """Succeeds with probability ``success_rate``."""

    def __init__(self, success_rate: float = DEFAULT_SUCCESS_RATE, rng: random.Random | None = None):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError(f"success_rate must be between 0 and 1, got {success_rate}")
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    def decide(self) -> bool:
        return self._rng.random() < self.success_rate


class ForcedDecision:
    """Always returns the configured outcome; used for deterministic environments."""

    def __init__(self, outcome: bool = True):
        self.outcome = outcome

    def decide(self) -> bool:
        return self.outcome


def get_decision_strategy(settings: Settings | None = None) -> DecisionStrategy:
    """Pick the strategy selected by FORCE_PAYMENT_SUCCESS / PAYMENT_SUCCESS_RATE."""
    settings = settings or get_settings()
    if settings.force_payment_success:
        return ForcedDecision(True)
    return RandomDecision(settings.payment_success_rate)
