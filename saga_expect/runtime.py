import functools
import inspect
import logging
import math
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from anyio import Event, create_memory_object_stream, create_task_group, current_time

from saga_expect.actions import matches_pattern
from saga_expect.effects import *
from saga_expect.multiset import MultisetStore
from saga_expect.providers import ProviderSet, Stubbed
from saga_expect.serialize import inspect_value
from saga_expect.store import Store, reduce_actions

logger = logging.getLogger(__name__)


class UnsupportedEffectError(TypeError):
    """An effect reached default execution but the runtime cannot perform it."""


@dataclass
class Yielded:
    effect: Any


@dataclass
class Returned:
    value: Any = None


@dataclass
class Threw:
    error: BaseException


Outcome = Union[Returned, Threw]


class Stepper:
    """Advances a saga one effect at a time.

    Sync generators may ``return`` a value; async generators always return
    ``None``. Errors are thrown into the saga at its current ``yield``.
    """

    def __init__(self, gen):
        self.gen = gen
        self.is_async = inspect.isasyncgen(gen)

    async def step(self, value: Any = None, error: Optional[BaseException] = None):
        try:
            if self.is_async:
                if error is not None:
                    effect = await self.gen.athrow(error)
                else:
                    effect = await self.gen.asend(value)
            elif error is not None:
                effect = self.gen.throw(error)
            else:
                effect = self.gen.send(value)
        except StopIteration as stop:
            return Returned(stop.value)
        except StopAsyncIteration:
            return Returned(None)
        except Exception as e:
            return Threw(e)
        return Yielded(effect)


class ChannelOverflowError(RuntimeError):
    """A bounded action channel has no room left for another action."""


class Channel:
    """Buffered channel created by an ``ActionChannel`` effect."""

    def __init__(self, pattern: Any = '*', buffer: Optional[int] = None):
        self.pattern = pattern
        self.buffer = buffer
        self._sender, self._receiver = create_memory_object_stream(math.inf if buffer is None else buffer)

    @property
    def is_full(self) -> bool:
        stats = self._sender.statistics()
        return stats.tasks_waiting_receive == 0 and stats.current_buffer_used >= stats.max_buffer_size

    def check_room(self, action: Any) -> None:
        if self.is_full:
            raise ChannelOverflowError(
                f'Channel for {inspect_value(self.pattern)} is full (buffer={self.buffer}); '
                f'cannot accept {inspect_value(action)}'
            )

    def put(self, action: Any) -> None:
        self.check_room(action)
        self._sender.send_nowait(action)

    async def take(self) -> Any:
        return await self._receiver.receive()

    def close(self) -> None:
        self._sender.close()
        self._receiver.close()


class SagaTask:
    """Handle returned by ``Fork`` effects."""

    def __init__(self, name: str):
        self.name = name
        self.outcome: Optional[Outcome] = None
        self._done = Event()

    @property
    def is_running(self) -> bool:
        return self.outcome is None

    def finish(self, outcome: Outcome) -> None:
        self.outcome = outcome
        self._done.set()

    async def join(self) -> Any:
        await self._done.wait()
        if isinstance(self.outcome, Threw):
            raise self.outcome.error
        return self.outcome.value

    def __repr__(self):
        return f'SagaTask({self.name!r})'


class _Taker:
    def __init__(self, pattern: Any):
        self.pattern = pattern
        self.action = None
        self._event = Event()

    def resolve(self, action: Any) -> None:
        self.action = action
        self._event.set()

    async def wait(self) -> Any:
        await self._event.wait()
        return self.action


class SagaRuntime:
    """Drives one saga to completion, recording every effect it yields.

    Effects are grouped by kind in ``self.effects``. Each effect is first
    offered to the providers; unstubbed effects are performed here.
    """

    def __init__(self, providers: Optional[ProviderSet] = None, store: Optional[Store] = None,
                 context: Optional[Dict[str, Any]] = None, queued_actions: Iterable[Any] = (),
                 effects: Optional[Dict[str, MultisetStore]] = None):
        self.providers = providers if providers is not None else ProviderSet()
        self.store = store or Store()
        self.context = dict(context or {})
        self.effects: Dict[str, MultisetStore] = effects if effects is not None else defaultdict(MultisetStore)
        self.dispatch_log: List[Any] = []
        self.fork_errors: List[BaseException] = []
        self.outcome: Optional[Outcome] = None
        self.timed_out = False
        self._queued = list(queued_actions)
        self._takers: List[_Taker] = []
        self._channels: List[Channel] = []
        self._task_group = None

    @property
    def final_state(self) -> Any:
        return reduce_actions(self.store.reducer, self.store.initial_state, self.dispatch_log)

    async def run(self, saga: Callable, *args, timeout: Optional[float] = None, **kwargs) -> Outcome:
        """Run a saga and its forks; stop everything after ``timeout`` seconds."""
        if self.outcome is not None:
            raise RuntimeError('A SagaRuntime runs a single saga')

        name = inspect_value(saga)
        logger.debug('Running saga %s', name)
        outcome = Returned(None)
        try:
            async with create_task_group() as tg:
                self._task_group = tg
                if timeout is not None:
                    tg.cancel_scope.deadline = current_time() + timeout
                outcome = await self._drive(saga(*args, **kwargs))
        finally:
            for channel in self._channels:
                channel.close()

        self.timed_out = tg.cancel_scope.cancelled_caught
        self.outcome = outcome
        logger.debug('Saga %s finished with %r (timed out: %s)', name, outcome, self.timed_out)
        return outcome

    async def _drive(self, gen) -> Outcome:
        stepper = Stepper(gen)
        value, error = None, None
        while True:
            step = await stepper.step(value, error)
            if not isinstance(step, Yielded):
                return step
            try:
                value, error = await self.resolve(step.effect), None
            except Exception as e:
                value, error = None, e

    async def resolve(self, effect: Any) -> Any:
        """Record, then stub or perform, a single yielded value."""
        if not isinstance(effect, Effect):
            return effect
        self.record(effect)
        return await self._perform(effect)

    def record(self, effect: Effect) -> None:
        logger.debug('Recorded %s effect %r', effect.kind, effect)
        self.effects[effect.kind].add(effect)

    async def _perform(self, effect: Effect) -> Any:
        resolution = self.providers.resolve(effect)
        if isinstance(resolution, Stubbed):
            return resolution.value
        return await self._execute(effect)

    async def _execute(self, effect: Effect) -> Any:
        match effect:
            case Fork():
                return self._fork(effect)

            case Cps():
                return await self._cps(effect)

            case Call(_, args, kwargs):
                return await self._settle(self._target(effect)(*args, **(kwargs or {})))

            case Put(action, channel):
                if channel is not None:
                    channel.put(action)
                    return action
                return self.dispatch(action)

            case Take(pattern, channel):
                if channel is not None:
                    return await channel.take()
                return await self._take(pattern)

            case Select(selector, args):
                state = self.store.get_state()
                return selector(state, *args) if selector else state

            case All(effects):
                return await self._all(effects)

            case Race(effects):
                return await self._race(effects)

            case ActionChannel(pattern, buffer):
                return self._open_channel(pattern, buffer)

            case GetContext(key):
                return self.context.get(key)

            case SetContext(props):
                self.context.update(props)
                return None

            case _:
                raise UnsupportedEffectError(
                    f'No default handling for {type(effect).__name__} effects; stub it with a provider'
                )

    def dispatch(self, action: Any) -> Any:
        """Send an action to the reducer, waiting takes and open channels.

        Raises ``ChannelOverflowError`` before anything is updated when a
        matching bounded channel is full.
        """
        channels = [channel for channel in self._channels if matches_pattern(channel.pattern, action)]
        for channel in channels:
            channel.check_room(action)

        self.dispatch_log.append(action)
        self.store.dispatch(action)
        takers, self._takers = self._takers, []
        for taker in takers:
            if matches_pattern(taker.pattern, action):
                taker.resolve(action)
            else:
                self._takers.append(taker)
        for channel in channels:
            channel.put(action)
        return action

    def _open_channel(self, pattern: Any, buffer: Optional[int]) -> Channel:
        channel = Channel(pattern, buffer)
        self._channels.append(channel)
        # queued test actions the new channel listens for are dispatched now
        for action in list(self._queued):
            if matches_pattern(pattern, action) and not channel.is_full:
                self.dispatch(action)
                self._queued.remove(action)
        return channel

    async def _take(self, pattern: Any) -> Any:
        for index, action in enumerate(self._queued):
            if matches_pattern(pattern, action):
                del self._queued[index]
                return self.dispatch(action)

        taker = _Taker(pattern)
        self._takers.append(taker)
        try:
            return await taker.wait()
        finally:
            if taker in self._takers:
                self._takers.remove(taker)

    @staticmethod
    def _target(effect: Call) -> Callable:
        if isinstance(effect.fn, str):
            return getattr(effect.context, effect.fn)
        if effect.context is not None and inspect.isfunction(effect.fn):
            # plain functions receive the context as their first argument
            return functools.partial(effect.fn, effect.context)
        return effect.fn

    async def _settle(self, result: Any) -> Any:
        """Turn what a called function returned into the value resumed into the saga."""
        if inspect.isgenerator(result) or inspect.isasyncgen(result):
            outcome = await self._drive(result)
            if isinstance(outcome, Threw):
                raise outcome.error
            return outcome.value
        if inspect.isawaitable(result):
            return await result
        return result

    async def _cps(self, effect: Cps) -> Any:
        done = Event()
        box = {}

        def callback(error=None, result=None):
            box['error'], box['result'] = error, result
            done.set()

        result = self._target(effect)(*effect.args, callback, **(effect.kwargs or {}))
        if inspect.isawaitable(result):
            await result
        await done.wait()
        if box['error'] is not None:
            raise box['error']
        return box['result']

    def _fork(self, effect: Fork) -> SagaTask:
        task = SagaTask(inspect_value(effect.fn))
        self._task_group.start_soon(self._run_task, effect, task, name=task.name)
        return task

    async def _run_task(self, effect: Fork, task: SagaTask):
        try:
            value = await self._settle(self._target(effect)(*effect.args, **(effect.kwargs or {})))
        except Exception as e:
            # collected in fork_errors; the root outcome is left untouched
            logger.error('Forked saga %s raised %r', task.name, e, exc_info=e)
            self.fork_errors.append(e)
            task.finish(Threw(e))
        else:
            task.finish(Returned(value))

    def _record_branches(self, effects) -> List:
        keys = list(effects) if isinstance(effects, Mapping) else list(range(len(effects)))
        for key in keys:
            if isinstance(effects[key], Effect):
                self.record(effects[key])
        return keys

    async def _perform_branch(self, effect: Any) -> Any:
        if isinstance(effect, Effect):
            return await self._perform(effect)
        return effect

    async def _all(self, effects) -> Union[list, dict]:
        keys = self._record_branches(effects)
        results = {}
        errors = []

        async with create_task_group() as tg:
            async def run_effect(key):
                try:
                    results[key] = await self._perform_branch(effects[key])
                except Exception as e:
                    errors.append(e)
                    tg.cancel_scope.cancel()

            for key in keys:
                tg.start_soon(run_effect, key)

        if errors:
            raise errors[0]
        if isinstance(effects, Mapping):
            return {key: results[key] for key in keys}
        return [results[key] for key in keys]

    async def _race(self, effects) -> Union[list, dict]:
        """Resolve with the first branch to finish; the others are cancelled."""
        keys = self._record_branches(effects)
        results = {}
        errors = []

        async with create_task_group() as tg:
            async def run_effect(key):
                try:
                    result = await self._perform_branch(effects[key])
                except Exception as e:
                    if not results and not errors:
                        errors.append(e)
                else:
                    if not results and not errors:
                        results[key] = result
                tg.cancel_scope.cancel()

            for key in keys:
                tg.start_soon(run_effect, key)

        if errors:
            raise errors[0]
        if isinstance(effects, Mapping):
            return results
        return [results.get(key) for key in keys]
