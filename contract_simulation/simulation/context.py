# simulation/context.py
from collections import deque
from typing import Deque, Dict, Iterator, List, Optional, Set, Tuple

import structlog

from ..core.states import Operation, SimulationExample, State, Transition

# insertion-ordered set
OrderedStates = Dict[State, None]


class StateArena:
    """Interns states so pair bookkeeping works on small integer ids."""

    def __init__(self):
        self.states: List[State] = []
        self.ids: Dict[State, int] = {}

    def intern(self, state: State) -> int:
        if state not in self.ids:
            self.ids[state] = len(self.states)
            self.states.append(state)
        return self.ids[state]

    def __len__(self) -> int:
        return len(self.states)


class WorkList:
    """
    FIFO of pending examples plus the set of predecessor pairs already
    scheduled. A pair is scheduled at most once, whatever its kind or the
    operation it was reached through.
    """

    def __init__(self, arena: Optional[StateArena] = None):
        self.arena = arena or StateArena()
        self.queue: Deque[SimulationExample] = deque()
        self.explored: Set[Tuple[int, int]] = set()

    def push(self, example: SimulationExample) -> None:
        self.queue.append(example)

    def pop(self) -> SimulationExample:
        return self.queue.popleft()

    def mark(self, source: State, target: State) -> bool:
        """Record the pair; False when it had already been recorded."""
        pair = (self.arena.intern(source), self.arena.intern(target))
        if pair in self.explored:
            return False
        self.explored.add(pair)
        return True

    def snapshot(self) -> Tuple[List[SimulationExample], Set[Tuple[State, State]]]:
        states = self.arena.states
        return list(self.queue), {(states[s], states[t]) for s, t in self.explored}

    def __len__(self) -> int:
        return len(self.queue)

    def __bool__(self) -> bool:
        return bool(self.queue)


class Context:
    """
    Equivalence indices over source states and the predecessor index over
    both explorations, keyed by operation so that the same action can be
    followed backward in both programs at once.
    """

    def __init__(self, logger=None):
        self.traces: Dict[Tuple, OrderedStates] = {}
        self.observations: Dict[Tuple, OrderedStates] = {}
        self.predecessors: Dict[State, Dict[Operation, OrderedStates]] = {}
        self.worklist = WorkList()
        self.logger = logger or structlog.get_logger(__name__)

    def add_source(self, transition: Transition) -> None:
        self.add_source_state(transition.post)
        self.add_transition(transition)

    def add_source_state(self, state: State) -> None:
        self.traces.setdefault(state.trace.key, {})[state] = None
        self.observations.setdefault(state.observation.key, {})[state] = None

    def add_target(self, transition: Transition) -> None:
        self.add_transition(transition)

    def add_transition(self, transition: Transition) -> None:
        if transition.pre is None or transition.operation is None:
            return
        by_operation = self.predecessors.setdefault(transition.post, {})
        by_operation.setdefault(transition.operation, {})[transition.pre] = None

    def source_trace_equivalent(self, state: State) -> List[State]:
        return list(self.traces.get(state.trace.key, {}))

    def source_observation_distinct(self, state: State) -> Iterator[State]:
        key = state.observation.key
        for observation, states in self.observations.items():
            if observation == key:
                continue
            yield from states

    def predecessor_operations(self, state: State) -> List[Operation]:
        return list(self.predecessors.get(state, {}))

    def predecessor_states(self, state: State, operation: Operation) -> List[State]:
        return list(self.predecessors.get(state, {}).get(operation, {}))

    def new_joint_predecessors(self, example: SimulationExample) -> Iterator[SimulationExample]:
        """Pairs of predecessors reached through the same operation, each pair at most once per run."""
        s, t = example.source, example.target

        for operation in self.predecessor_operations(s):
            for sp in self.predecessor_states(s, operation):
                for tp in self.predecessor_states(t, operation):
                    if not self.worklist.mark(sp, tp):
                        continue
                    yield SimulationExample(sp, tp, example.kind)
