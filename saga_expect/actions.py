from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass
class Action:
    """Base class for all actions."""
    type: ClassVar[str]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if 'type' not in cls.__dict__:
            cls.type = cls.__name__.upper()


def action_type(action: Any) -> Any:
    """Return the type tag of an Action instance or a plain dict action."""
    if isinstance(action, dict):
        return action.get('type')
    return getattr(action, 'type', None)


def matches_pattern(pattern: Any, action: Any) -> bool:
    """Check whether an action satisfies a take pattern.

    Patterns follow redux-saga: ``'*'`` (or ``None``) matches everything, a
    string matches the action type, an ``Action`` subclass matches instances,
    a list matches if any member matches, any other callable is a predicate.
    """
    match pattern:
        case None | '*':
            return True
        case str():
            return action_type(action) == pattern
        case list() | tuple():
            return any(matches_pattern(p, action) for p in pattern)
        case type() if issubclass(pattern, Action):
            return isinstance(action, pattern)
        case _ if callable(pattern):
            return bool(pattern(action))
    return False
