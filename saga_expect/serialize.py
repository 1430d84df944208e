"""Render effects as the constructor calls that would have produced them.

Used for assertion diagnostics only. Effect payloads are expected to be
acyclic: lists and dicts of effects are rendered element by element with no
cycle detection.
"""
from collections.abc import Mapping
from typing import Any

from .effects import (
    ActionChannel,
    All,
    Call,
    Cps,
    Fork,
    GetContext,
    Put,
    Race,
    Select,
    SetContext,
    Take,
)
from .multiset import MultisetStore


def inspect_value(value: Any) -> str:
    """Readable rendering of an effect argument."""
    if isinstance(value, dict):
        items = ', '.join(f'{inspect_value(k)}: {inspect_value(v)}' for k, v in value.items())
        return '{' + items + '}'
    if isinstance(value, list):
        return '[' + ', '.join(inspect_value(v) for v in value) + ']'
    if isinstance(value, tuple):
        inner = ', '.join(inspect_value(v) for v in value)
        return f'({inner},)' if len(value) == 1 else f'({inner})'
    if callable(value) and hasattr(value, '__qualname__'):
        # nested test helpers would otherwise read as "test_x.<locals>.helper"
        return value.__qualname__.rsplit('<locals>.', 1)[-1]
    return repr(value)


def serialize_effect(effect: Any, effect_key: str = None, separator: str = '\n') -> str:
    if isinstance(effect, Mapping) and effect_key and effect_key in effect:
        return serialize_effect(effect[effect_key], effect_key)

    if isinstance(effect, (list, tuple)):
        return separator.join(serialize_effect(item) for item in effect)

    match effect:
        case Put(action, channel, resolve):
            name = 'put_resolve' if resolve else 'put'
            args = [inspect_value(arg) for arg in (channel, action) if arg is not None]
            return f"{name}({', '.join(args)})"
        case Fork():
            return _serialize_call(effect, 'spawn' if effect.detached else 'fork')
        case Cps():
            return _serialize_call(effect, 'cps')
        case Call():
            return _serialize_call(effect, 'call')
        case Take(pattern, channel, maybe):
            name = 'take_maybe' if maybe else 'take'
            arg = 'channel' if channel is not None else inspect_value(pattern)
            return f'{name}({arg})'
        case Race(effects):
            return _serialize_combinator(effects, 'race')
        case All(effects):
            return _serialize_combinator(effects, 'all')
        case Select(selector, args):
            rendered = [inspect_value(arg) for arg in (selector, *args)]
            return f"select({', '.join(rendered)})"
        case ActionChannel(pattern, buffer):
            args = [inspect_value(arg) for arg in (pattern, buffer) if arg is not None]
            return f"action_channel({', '.join(args)})"
        case GetContext(key):
            return f'get_context({inspect_value(key)})'
        case SetContext(props):
            return f'set_context({inspect_value(props)})'
        case _:
            return inspect_value(effect)


def _serialize_call(effect: Call, name: str) -> str:
    args = []
    if effect.context is not None:
        args.append(inspect_value({'context': effect.context, 'fn': effect.fn}))
    elif effect.fn is not None:
        args.append(inspect_value(effect.fn))
    args.extend(inspect_value(arg) for arg in effect.args)
    if effect.kwargs:
        args.extend(f'{key}={inspect_value(value)}' for key, value in effect.kwargs.items())
    return f"{name}({', '.join(args)})"


def _serialize_combinator(effects, name: str) -> str:
    if isinstance(effects, Mapping):
        body = ''.join(f'  {key}: {serialize_effect(effects[key])},\n' for key in effects)
        return f'{name}({{\n{body}}})'
    return f'{name}([{serialize_effect(list(effects), separator=", ")}])'


def report_actual_effects(store: MultisetStore, store_key: str) -> str:
    """Render the effects still left in ``store``, indented, one block per effect."""
    values = store.values()
    if not values:
        return ''
    blocks = []
    for effect in values:
        lines = serialize_effect(effect, store_key).split('\n')
        blocks.append('\n'.join(f'  {line}' for line in lines))
    return '\n\n'.join(blocks)
