"""Stub providers.

A provider is ``provider(effect, next)``. Returning any value stubs the effect
with it (``None`` included); returning ``next()`` defers to the next provider
for the same effect kind and finally to the static pairs. When nothing stubs
the effect the runtime executes it for real. Raising from a provider makes
the effect fail inside the saga.
"""
import logging
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Sequence, Tuple, Union

from .effects import Effect
from .matchers import Matcher

logger = logging.getLogger(__name__)

Provider = Callable[[Effect, Callable[[], 'Resolution']], Any]


class Resolution:
    """Outcome of consulting the providers for one effect."""


@dataclass(frozen=True)
class Stubbed(Resolution):
    value: Any


class Deferred(Resolution):
    def __repr__(self):
        return 'DEFER'


DEFER = Deferred()


@dataclass(frozen=True)
class DynamicValue:
    fn: Callable[[Effect], Any]


def dynamic(fn: Callable[[Effect], Any]) -> DynamicValue:
    """Compute a static provider's value from the effect being stubbed."""
    return DynamicValue(fn)


def throw_error(error: BaseException) -> DynamicValue:
    """Static provider value that makes the matched effect raise ``error``."""
    def raise_error(effect):
        raise error
    return DynamicValue(raise_error)


def _as_resolution(result: Any) -> Resolution:
    return result if isinstance(result, Resolution) else Stubbed(result)


def build_chain(providers: Sequence[Provider],
                fallback: Callable[[Effect], Resolution]) -> Callable[[Effect], Resolution]:
    """Fold ``providers`` into a single callable, last one deferring to ``fallback``."""
    chain = fallback
    for provider in reversed(providers):
        chain = _link(provider, chain)
    return chain


def _link(provider: Provider, rest: Callable[[Effect], Resolution]) -> Callable[[Effect], Resolution]:
    def handle(effect: Effect) -> Resolution:
        return _as_resolution(provider(effect, lambda: rest(effect)))
    return handle


def _pattern_matches(pattern: Union[Effect, Matcher], effect: Effect) -> bool:
    if isinstance(pattern, Matcher):
        return pattern.matches(effect)
    return pattern == effect


def static_provider(pairs: Iterable[Tuple[Any, Any]]) -> Callable[[Effect], Resolution]:
    pairs = list(pairs)

    def provide(effect: Effect) -> Resolution:
        for pattern, value in pairs:
            if _pattern_matches(pattern, effect):
                if isinstance(value, DynamicValue):
                    return Stubbed(value.fn(effect))
                return Stubbed(value)
        return DEFER

    return provide


class ProviderSet:
    """Dynamic providers grouped by effect kind plus static (pattern, value) pairs."""

    def __init__(self):
        self._dynamic: dict = defaultdict(list)
        self._static: List[Tuple[Any, Any]] = []
        self._chains: dict = {}

    def add(self, providers: Union[Mapping, Iterable[Tuple[Any, Any]]]) -> 'ProviderSet':
        if isinstance(providers, Mapping):
            for kind, handlers in providers.items():
                if isinstance(kind, type):
                    kind = kind.kind
                if callable(handlers):
                    handlers = [handlers]
                self._dynamic[kind].extend(handlers)
        else:
            for pair in providers:
                pattern, value = pair
                self._static.append((pattern, value))
        self._chains.clear()
        return self

    def resolve(self, effect: Effect) -> Resolution:
        kind = effect.kind
        chain = self._chains.get(kind)
        if chain is None:
            chain = build_chain(self._dynamic.get(kind, ()), static_provider(self._static))
            self._chains[kind] = chain
        resolution = chain(effect)
        if isinstance(resolution, Stubbed):
            logger.debug('Stubbed %s effect with %r', kind, resolution.value)
        return resolution

    def __bool__(self) -> bool:
        return bool(self._dynamic) or bool(self._static)
