# core/limiter.py
from abc import ABC, abstractmethod


class Limiter(ABC):
    """Per-run bound on exploration. Instances are stateful and never shared."""

    @abstractmethod
    def should_continue(self, state_count: int) -> bool:
        ...


class LimiterFactory(ABC):
    @abstractmethod
    def create(self) -> Limiter:
        ...


class StateCountLimiter(Limiter):
    """
    Bounds the number of distinct post-states a run may produce.

    Once the bound is reached the limiter stays exhausted for the rest of the
    run, even if asked again with a smaller count.
    """

    def __init__(self, max_states: int):
        if max_states < 1:
            raise ValueError(f"State bound must be positive, got {max_states}")
        self.max_states = max_states
        self.exhausted = False
        self.high_water = 0

    def should_continue(self, state_count: int) -> bool:
        self.high_water = max(self.high_water, state_count)
        if self.high_water >= self.max_states:
            self.exhausted = True
        return not self.exhausted

    def __repr__(self) -> str:
        return f"StateCountLimiter(max_states={self.max_states}, seen={self.high_water})"


class StateCountLimiterFactory(LimiterFactory):
    def __init__(self, max_states: int):
        if max_states < 1:
            raise ValueError(f"State bound must be positive, got {max_states}")
        self.max_states = max_states

    def create(self) -> StateCountLimiter:
        return StateCountLimiter(self.max_states)
