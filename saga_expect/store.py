from typing import Any, Callable, Iterable, Optional

Reducer = Callable[[Any, Any], Any]


def reduce_actions(reducer: Optional[Reducer], state: Any, actions: Iterable[Any]) -> Any:
    """Feed ``actions`` through ``reducer`` in order, starting from ``state``."""
    if reducer is None:
        return state
    for action in actions:
        state = reducer(state, action)
    return state


class Store:
    """Redux-style state holder used for ``Select`` effects and final-state checks."""

    def __init__(self, reducer: Optional[Reducer] = None, state: Any = None):
        self.reducer = reducer
        self.initial_state = state
        self.state = state

    def dispatch(self, action):
        self.state = reduce_actions(self.reducer, self.state, [action])
        return action

    def get_state(self):
        return self.state
