from typing import TypeVar, Generic, Any, ClassVar, Union
from dataclasses import dataclass
from .actions import Action

T = TypeVar('T')


class Effect(Generic[T]):
    """Base class for all effects"""
    kind: ClassVar[str] = 'effect'


@dataclass
class Call(Effect[T]):
    kind: ClassVar[str] = 'call'
    fn: Any
    args: tuple = ()
    kwargs: dict = None
    context: Any = None

    def __init__(self, fn: Any, *args, **kwargs):
        self.fn = fn
        self.args = args
        self.kwargs = kwargs if kwargs else None
        self.context = None


@dataclass(init=False)
class Cps(Call[T]):
    """Call a node-style function; the runtime appends ``callback(error, result)``."""
    kind: ClassVar[str] = 'cps'


@dataclass(init=False)
class Fork(Call[None]):
    kind: ClassVar[str] = 'fork'
    detached: bool = False

    def __init__(self, fn: Any, *args, **kwargs):
        super().__init__(fn, *args, **kwargs)
        self.detached = False


@dataclass
class Put(Effect[None]):
    kind: ClassVar[str] = 'put'
    action: Union[Action, dict]
    channel: Any = None
    resolve: bool = False


@dataclass
class Take(Effect[Action]):
    kind: ClassVar[str] = 'take'
    pattern: Any = '*'  # type string, Action class, predicate or list of those
    channel: Any = None
    maybe: bool = False


@dataclass
class Select(Effect[Any]):
    kind: ClassVar[str] = 'select'
    selector: callable = None
    args: tuple = ()

    def __init__(self, selector: callable = None, *args):
        self.selector = selector
        self.args = args


@dataclass
class All(Effect[list]):
    kind: ClassVar[str] = 'all'
    effects: Union[list[Effect], dict[str, Effect]]


@dataclass
class Race(Effect[dict]):
    kind: ClassVar[str] = 'race'
    effects: Union[list[Effect], dict[str, Effect]]


@dataclass
class ActionChannel(Effect[Any]):
    kind: ClassVar[str] = 'action_channel'
    pattern: Any
    buffer: Any = None


@dataclass
class GetContext(Effect[Any]):
    kind: ClassVar[str] = 'get_context'
    key: str


@dataclass
class SetContext(Effect[None]):
    kind: ClassVar[str] = 'set_context'
    props: dict


def apply(context: Any, fn: Any, args=()) -> Call:
    """Call ``fn`` bound to ``context``; ``fn`` may be a method name."""
    effect = Call(fn, *args)
    effect.context = context
    return effect


def spawn(fn: Any, *args, **kwargs) -> Fork:
    effect = Fork(fn, *args, **kwargs)
    effect.detached = True
    return effect


def put_resolve(action: Union[Action, dict], channel: Any = None) -> Put:
    return Put(action, channel=channel, resolve=True)


def take_maybe(pattern: Any = '*', channel: Any = None) -> Take:
    return Take(pattern, channel=channel, maybe=True)
