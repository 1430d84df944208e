"""Declarative saga tests.

    await (expect_saga(checkout, 'cart-1')
           .provide({'call': fake_api})
           .put(CheckoutSucceeded(order_id=1))
           .not_.call(send_email)
           .returns(1)
           .run())

Assertions are registered up front and checked once, in order, after the
saga finished. Each effect assertion consumes one recorded occurrence.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from saga_expect import matchers as m
from saga_expect.config import load_config
from saga_expect.diagnostics import DiagnosticFormatter, formatter_for
from saga_expect.expectations import (
    EffectExpectation,
    ErrorExpectation,
    Expectation,
    ExpectationContext,
    ReturnExpectation,
    SagaAssertionError,
    StateExpectation,
    error_matches,
    evaluate,
)
from saga_expect.multiset import MultisetStore
from saga_expect.providers import ProviderSet
from saga_expect.runtime import Returned, SagaRuntime, Threw
from saga_expect.serialize import inspect_value
from saga_expect.store import Store

logger = logging.getLogger(__name__)

_DEFAULT = object()


@dataclass
class SagaRunResult:
    """What the saga did, captured before expectations consumed any effect."""
    effects: Dict[str, List[Any]]
    return_value: Any = None
    error: Optional[BaseException] = None
    store_state: Any = None
    dispatch_log: List[Any] = field(default_factory=list)
    fork_errors: List[BaseException] = field(default_factory=list)
    timed_out: bool = False


class _EffectAssertion:
    """Registers an effect expectation, e.g. ``.put(action)`` or ``.call.fn(api)``."""

    def __init__(self, tester: 'ExpectSaga', name: str, factory: m.MatcherFactory, **variants):
        self.tester = tester
        self.name = name
        self.factory = factory
        for variant, assertion in variants.items():
            setattr(self, variant, assertion)

    def __call__(self, *args, **kwargs) -> 'ExpectSaga':
        return self.tester._expect_effect(self.name, self.factory(*args, **kwargs))

    def like(self, **fields) -> 'ExpectSaga':
        return self.tester._expect_effect(self.name, self.factory.like(**fields))

    def fn(self, fn: Any) -> 'ExpectSaga':
        return self.tester._expect_effect(self.name, self.factory.fn(fn))

    def action(self, action: Any) -> 'ExpectSaga':
        return self.tester._expect_effect(self.name, self.factory.action(action))

    def pattern(self, pattern: Any) -> 'ExpectSaga':
        return self.tester._expect_effect(self.name, self.factory.pattern(pattern))

    def selector(self, selector: Any) -> 'ExpectSaga':
        return self.tester._expect_effect(self.name, self.factory.selector(selector))


class ExpectSaga:
    """Utility for testing sagas"""

    def __init__(self, saga, *args, **kwargs):
        self.saga = saga
        self.args = args
        self.kwargs = kwargs
        self.providers = ProviderSet()
        self.config = load_config()
        self._formatter: Optional[DiagnosticFormatter] = None
        self._reducer = None
        self._state = None
        self._context: Dict[str, Any] = {}
        self._queued: List[Any] = []
        # builders: (effects by kind, formatter) -> Expectation, built fresh for every run
        self._expectations: List[Callable[[Dict[str, MultisetStore], DiagnosticFormatter], Expectation]] = []
        self._throws: List[Tuple[Any, bool]] = []
        self._negate_next = False

    # setup

    def provide(self, providers) -> 'ExpectSaga':
        """Stub effects: ``{kind: provider}`` and/or ``[(pattern, value), ...]``."""
        self.providers.add(providers)
        return self

    def with_reducer(self, reducer, state=None) -> 'ExpectSaga':
        self._reducer = reducer
        if state is not None:
            self._state = state
        return self

    def with_state(self, state) -> 'ExpectSaga':
        self._state = state
        return self

    def with_context(self, **context) -> 'ExpectSaga':
        self._context.update(context)
        return self

    def with_formatter(self, formatter: DiagnosticFormatter) -> 'ExpectSaga':
        self._formatter = formatter
        return self

    def with_config(self, **overrides) -> 'ExpectSaga':
        self.config = load_config(overrides)
        return self

    def dispatch(self, action) -> 'ExpectSaga':
        """Queue an action for the first ``Take`` that matches it."""
        self._queued.append(action)
        return self

    # assertions

    @property
    def not_(self) -> 'ExpectSaga':
        self._negate_next = True
        return self

    def _register(self, build) -> 'ExpectSaga':
        self._expectations.append(build)
        return self

    def _take_expected(self) -> bool:
        expected = not self._negate_next
        self._negate_next = False
        return expected

    def _expect_effect(self, name: str, effect: Any) -> 'ExpectSaga':
        kind = effect.kind
        expected = self._take_expected()
        return self._register(lambda effects, formatter: EffectExpectation(
            name, effect, effects[kind], kind, expected=expected, formatter=formatter,
        ))

    @property
    def put(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'put', m.put,
                                resolve=_EffectAssertion(self, 'put_resolve', m.put_resolve))

    @property
    def call(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'call', m.call)

    @property
    def apply(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'apply', m.apply)

    @property
    def cps(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'cps', m.cps)

    @property
    def fork(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'fork', m.fork)

    @property
    def spawn(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'spawn', m.spawn)

    @property
    def take(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'take', m.take,
                                maybe=_EffectAssertion(self, 'take_maybe', m.take_maybe))

    @property
    def select(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'select', m.select)

    @property
    def race(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'race', m.race)

    @property
    def all(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'all', m.all_)

    @property
    def action_channel(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'action_channel', m.action_channel)

    @property
    def get_context(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'get_context', m.get_context)

    @property
    def set_context(self) -> _EffectAssertion:
        return _EffectAssertion(self, 'set_context', m.set_context)

    def returns(self, value) -> 'ExpectSaga':
        expected = self._take_expected()
        return self._register(lambda effects, formatter: ReturnExpectation(
            value, expected=expected, formatter=formatter))

    def has_final_state(self, state) -> 'ExpectSaga':
        expected = self._take_expected()
        return self._register(lambda effects, formatter: StateExpectation(
            state, expected=expected, formatter=formatter))

    def throws(self, error) -> 'ExpectSaga':
        """Expect an error of the given class, or equal to the given value."""
        expected = self._take_expected()
        self._throws.append((error, expected))
        return self._register(lambda effects, formatter: ErrorExpectation(
            error, expected=expected, formatter=formatter))

    def _anticipates(self, error: BaseException) -> bool:
        """Whether a registered ``throws`` assertion will report on ``error``."""
        return any(expected or error_matches(pattern, error) for pattern, expected in self._throws)

    # running

    async def run(self, timeout: Optional[float] = _DEFAULT) -> SagaRunResult:
        if timeout is _DEFAULT:
            timeout = self.config['timeout']

        runtime = SagaRuntime(
            providers=self.providers,
            store=Store(self._reducer, self._state),
            context=self._context,
            queued_actions=self._queued,
        )
        outcome = await runtime.run(self.saga, *self.args, timeout=timeout, **self.kwargs)

        if runtime.timed_out and self.config['warn_on_timeout']:
            logger.warning('Saga %s did not finish within %ss; pending effects were cancelled',
                           inspect_value(self.saga), timeout)

        error = outcome.error if isinstance(outcome, Threw) else None
        if error is not None and not self._anticipates(error):
            raise error

        result = SagaRunResult(
            effects={kind: store.values() for kind, store in runtime.effects.items()},
            return_value=outcome.value if isinstance(outcome, Returned) else None,
            error=error,
            store_state=runtime.final_state,
            dispatch_log=list(runtime.dispatch_log),
            fork_errors=list(runtime.fork_errors),
            timed_out=runtime.timed_out,
        )

        formatter = self._formatter or formatter_for(self.config['color'])
        expectations = [build(runtime.effects, formatter) for build in self._expectations]
        failures = evaluate(expectations, ExpectationContext(
            store_state=result.store_state,
            return_value=result.return_value,
            error_value=error,
        ))
        if failures:
            raise SagaAssertionError(failures)
        return result


def expect_saga(saga, *args, **kwargs) -> ExpectSaga:
    return ExpectSaga(saga, *args, **kwargs)
