import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .diagnostics import DiagnosticFormatter
from .matchers import Matcher
from .multiset import MultisetStore
from .serialize import inspect_value, report_actual_effects, serialize_effect

logger = logging.getLogger(__name__)


@dataclass
class ExpectationContext:
    """What a finished run exposes to expectations."""
    store_state: Any = None
    return_value: Any = None
    error_value: Optional[BaseException] = None


@dataclass
class Verdict:
    passed: bool
    message: str = ''


PASSED = Verdict(True)


class SagaAssertionError(AssertionError):
    """Raised by ``ExpectSaga.run`` when at least one expectation failed."""

    def __init__(self, failures: Sequence[Verdict]):
        self.failures = list(failures)
        super().__init__('\n\n'.join(failure.message for failure in self.failures))


def values_equal(expected: Any, actual: Any) -> bool:
    """Deep equality that also compares exceptions by type, args and attributes."""
    if isinstance(expected, BaseException) and isinstance(actual, BaseException):
        return (type(expected) is type(actual)
                and expected.args == actual.args
                and vars(expected) == vars(actual))
    return expected == actual


def error_matches(pattern: Any, error_value: Any) -> bool:
    """A class matches instances of it; anything else matches by identity or value."""
    if isinstance(pattern, type):
        return isinstance(error_value, pattern)
    return error_value is pattern or values_equal(pattern, error_value)


class Expectation:
    def __init__(self, expected: bool = True, formatter: DiagnosticFormatter = None):
        self.expected = expected
        self.formatter = formatter or DiagnosticFormatter()

    def __call__(self, context: ExpectationContext) -> Verdict:
        raise NotImplementedError

    def fail(self, message: str) -> Verdict:
        return Verdict(False, message)


class EffectExpectation(Expectation):
    """Consumes one matching effect from the run's store for this effect kind.

    ``expected_effect`` is either an effect (compared with ``==``) or a
    ``Matcher`` for partial matching.
    """

    def __init__(self, effect_name: str, expected_effect: Any, store: MultisetStore,
                 store_key: str, expected: bool = True, formatter: DiagnosticFormatter = None):
        super().__init__(expected, formatter)
        self.effect_name = effect_name
        self.expected_effect = expected_effect
        self.store = store
        self.store_key = store_key

    @property
    def like(self) -> bool:
        return isinstance(self.expected_effect, Matcher)

    def _matches(self, effect: Any) -> bool:
        if self.like:
            return self.expected_effect.matches(effect)
        return effect == self.expected_effect

    def _serialize_expected(self) -> str:
        if self.like:
            return f'like {inspect_value(self.expected_effect.fields)}'
        return serialize_effect(self.expected_effect, self.store_key)

    def __call__(self, context: ExpectationContext) -> Verdict:
        matched = []

        def consume(effect):
            if self._matches(effect):
                matched.append(effect)
                return True
            return False

        deleted = self.store.delete_by(consume)
        fmt = self.formatter

        if deleted and not self.expected:
            received = serialize_effect(matched[0], self.store_key)
            return self.fail(
                f'Expected {self.effect_name} effect not to happen, but it did.'
                f"\n\n{fmt.received_color(f'Received: {received}')}"
            )

        if not deleted and self.expected:
            message = f'Expected {self.effect_name} effect to happen, but it never did.\n'
            actual = report_actual_effects(self.store, self.store_key)
            if actual:
                message += f"\n{fmt.dim(f'Actual {self.effect_name} effects:')}\n\n{actual}\n"
            message += f"\n{fmt.expected_color(f'Expected: {self._serialize_expected()}')}"
            return self.fail(message)

        return PASSED


class ReturnExpectation(Expectation):
    def __init__(self, value: Any, expected: bool = True, formatter: DiagnosticFormatter = None):
        super().__init__(expected, formatter)
        self.value = value

    def __call__(self, context: ExpectationContext) -> Verdict:
        fmt = self.formatter
        actual = context.return_value
        equal = values_equal(self.value, actual)
        if self.expected and not equal:
            return self.fail(f"{fmt.dim('Expected the saga to return given value.')}"
                             f'\n\n{fmt.diff(self.value, actual)}')
        if not self.expected and equal:
            return self.fail(f"{fmt.dim('Expected the saga not to return given value.')}"
                             f'\n\nBut it returned the exact value:\n  {fmt.print_received(actual)}')
        return PASSED


class StateExpectation(Expectation):
    def __init__(self, state: Any, expected: bool = True, formatter: DiagnosticFormatter = None):
        super().__init__(expected, formatter)
        self.state = state

    def __call__(self, context: ExpectationContext) -> Verdict:
        fmt = self.formatter
        actual = context.store_state
        equal = values_equal(self.state, actual)
        if self.expected and not equal:
            return self.fail(f"{fmt.dim('Expected saga to have final store state.')}"
                             f'\n\n{fmt.diff(self.state, actual)}')
        if not self.expected and equal:
            return self.fail(f"{fmt.dim('Expected saga not to have final store state.')}"
                             f'\n\nBut it has the exact value:\n  {fmt.print_received(actual)}')
        return PASSED


class ErrorExpectation(Expectation):
    """Matches the saga's error by class (``isinstance``) or by value."""

    def __init__(self, error: Any, expected: bool = True, formatter: DiagnosticFormatter = None):
        super().__init__(expected, formatter)
        self.error = error

    @property
    def by_type(self) -> bool:
        return isinstance(self.error, type)

    def _describe(self) -> str:
        return self.error.__name__ if self.by_type else inspect_value(self.error)

    def _matches(self, error_value: Any) -> bool:
        return error_matches(self.error, error_value)

    def __call__(self, context: ExpectationContext) -> Verdict:
        fmt = self.formatter
        error_value = context.error_value

        if not self.expected:
            if error_value is None or not self._matches(error_value):
                return PASSED
            return self.fail(f"{fmt.dim('Expected saga not to throw.')}"
                             f'\n\nBut it has thrown:\n  {fmt.print_received(error_value)}')

        if error_value is None:
            return self.fail(f"{fmt.dim('Expected saga to throw.')}"
                             f'\n\nExpected to throw:\n  {fmt.expected_color(self._describe())}'
                             '\nBut no error has thrown.')

        if self._matches(error_value):
            return PASSED

        if self.by_type:
            return self.fail(f"{fmt.dim('Expected saga to throw error of type.')}"
                             f'\n\nExpected to throw: {fmt.expected_color(self._describe())}'
                             f'\nBut instead threw: {fmt.received_color(type(error_value).__name__)}')

        return self.fail(f"{fmt.dim('Expected saga to throw.')}"
                         f'\n\n{fmt.diff(self.error, error_value)}')


def evaluate(expectations: Sequence[Expectation], context: ExpectationContext) -> List[Verdict]:
    """Run every expectation in registration order and return the failures."""
    failures = [verdict for verdict in (check(context) for check in expectations) if not verdict.passed]
    logger.debug('Evaluated %d expectations, %d failed', len(expectations), len(failures))
    return failures
