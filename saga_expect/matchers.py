"""Partial effect matching.

``m.call(fn, 1)`` builds the exact effect, ``m.call.fn(fn)`` and
``m.call.like(fn=fn, args=(1,))`` build a ``Matcher`` that only checks the
given fields. Both forms are accepted as static provider patterns.
"""
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from typing import Any, Callable, Optional

from . import effects
from .effects import ActionChannel, All, Call, Cps, Effect, Fork, GetContext, Put, Race, Select, SetContext, Take


def _field_values(value: Any) -> Optional[dict]:
    if isinstance(value, Mapping):
        return dict(value)
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in fields(value)}
    if hasattr(value, '__dict__'):
        return vars(value)
    return None


def is_match(actual: Any, expected: Any) -> bool:
    """True when every field present in ``expected`` matches ``actual``.

    Mappings are matched key by key and may omit keys, sequences must have
    the same length and match element-wise, anything else compares with ``==``.
    """
    if actual is expected:
        return True
    if isinstance(expected, Mapping):
        values = _field_values(actual)
        if values is None:
            return False
        return all(key in values and is_match(values[key], item) for key, item in expected.items())
    if isinstance(expected, (list, tuple)) and isinstance(actual, (list, tuple)):
        return len(actual) == len(expected) and all(is_match(a, e) for a, e in zip(actual, expected))
    return actual == expected


class Matcher:
    """Matches effects of one concrete type whose fields partially match."""

    def __init__(self, effect_type: type, fields: dict):
        self.effect_type = effect_type
        self.fields = fields

    @property
    def kind(self) -> str:
        return self.effect_type.kind

    def matches(self, effect: Any) -> bool:
        return type(effect) is self.effect_type and is_match(effect, self.fields)

    def __eq__(self, other):
        if not isinstance(other, Matcher):
            return NotImplemented
        return self.effect_type is other.effect_type and self.fields == other.fields

    def __repr__(self) -> str:
        return f'Matcher({self.effect_type.__name__}, {self.fields!r})'


class MatcherFactory:
    """Builds exact effects when called, partial matchers via ``like``."""

    def __init__(self, build: Callable[..., Effect], effect_type: type, **defaults):
        self.build = build
        self.effect_type = effect_type
        self.defaults = defaults

    @property
    def kind(self) -> str:
        return self.effect_type.kind

    def __call__(self, *args, **kwargs) -> Effect:
        return self.build(*args, **kwargs)

    def like(self, **fields) -> Matcher:
        return Matcher(self.effect_type, {**self.defaults, **fields})

    def fn(self, fn: Any) -> Matcher:
        return self.like(fn=fn)

    def action(self, action: Any) -> Matcher:
        return self.like(action=action)

    def pattern(self, pattern: Any) -> Matcher:
        return self.like(pattern=pattern)

    def selector(self, selector: Any) -> Matcher:
        return self.like(selector=selector)


call = MatcherFactory(Call, Call)
apply = MatcherFactory(effects.apply, Call)
cps = MatcherFactory(Cps, Cps)
fork = MatcherFactory(Fork, Fork, detached=False)
spawn = MatcherFactory(effects.spawn, Fork, detached=True)
put = MatcherFactory(Put, Put, resolve=False)
put_resolve = MatcherFactory(effects.put_resolve, Put, resolve=True)
take = MatcherFactory(Take, Take, maybe=False)
take_maybe = MatcherFactory(effects.take_maybe, Take, maybe=True)
select = MatcherFactory(Select, Select)
race = MatcherFactory(Race, Race)
all_ = MatcherFactory(All, All)
action_channel = MatcherFactory(ActionChannel, ActionChannel)
get_context = MatcherFactory(GetContext, GetContext)
set_context = MatcherFactory(SetContext, SetContext)
