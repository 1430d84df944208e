from dataclasses import dataclass

from saga_expect.actions import Action
from saga_expect.effects import (
    ActionChannel,
    All,
    Call,
    Cps,
    Effect,
    Fork,
    GetContext,
    Put,
    Race,
    Select,
    SetContext,
    Take,
    apply,
    put_resolve,
    spawn,
    take_maybe,
)
from saga_expect.serialize import inspect_value, serialize_effect


@dataclass
class Increment(Action):
    amount: int = 1


@dataclass
class Log(Effect[None]):
    kind = 'log'
    message: str


class Api:
    def fetch(self, user_id):
        return user_id

    def __repr__(self):
        return 'Api()'


def fetch_user(user_id):
    return user_id


def delay(seconds):
    return seconds


def worker(*args):
    return args


def test_put():
    assert serialize_effect(Put({'type': 'DONE'})) == "put({'type': 'DONE'})"
    assert serialize_effect(put_resolve(Increment(amount=2))) == 'put_resolve(Increment(amount=2))'


def test_call_variants():
    assert serialize_effect(Call(fetch_user, 42)) == 'call(fetch_user, 42)'
    assert serialize_effect(Call(fetch_user, 42, retries=3)) == 'call(fetch_user, 42, retries=3)'
    assert serialize_effect(Cps(fetch_user, 21)) == 'cps(fetch_user, 21)'


def test_call_with_context():
    api = Api()
    assert serialize_effect(apply(api, 'fetch', [1])) == "call({'context': Api(), 'fn': 'fetch'}, 1)"
    assert serialize_effect(apply(api, api.fetch, [1])) == "call({'context': Api(), 'fn': Api.fetch}, 1)"


def test_fork_and_spawn():
    assert serialize_effect(Fork(worker)) == 'fork(worker)'
    assert serialize_effect(spawn(worker, 1)) == 'spawn(worker, 1)'


def test_take_variants():
    assert serialize_effect(Take('FOO')) == "take('FOO')"
    assert serialize_effect(Take(Increment)) == 'take(Increment)'
    assert serialize_effect(take_maybe('FOO')) == "take_maybe('FOO')"
    assert serialize_effect(Take(channel=object())) == 'take(channel)'


def test_select():
    assert serialize_effect(Select(fetch_user, 1)) == 'select(fetch_user, 1)'
    assert serialize_effect(Select()) == 'select(None)'


def test_action_channel_and_context():
    assert serialize_effect(ActionChannel('FOO')) == "action_channel('FOO')"
    assert serialize_effect(ActionChannel('FOO', 10)) == "action_channel('FOO', 10)"
    assert serialize_effect(GetContext('api')) == "get_context('api')"
    assert serialize_effect(SetContext({'api': 1})) == "set_context({'api': 1})"


def test_keyed_race_renders_each_branch():
    effect = Race({'user': Call(fetch_user, 1), 'timeout': Call(delay, 5)})

    assert serialize_effect(effect) == (
        'race({\n'
        '  user: call(fetch_user, 1),\n'
        '  timeout: call(delay, 5),\n'
        '})'
    )


def test_listed_all_renders_branches_inline():
    effect = All([Call(fetch_user, 1), Call(fetch_user, 2)])

    assert serialize_effect(effect) == 'all([call(fetch_user, 1), call(fetch_user, 2)])'


def test_nested_combinators():
    effect = Race([All([Put({'type': 'A'})]), Take('B')])

    serialized = serialize_effect(effect)
    assert "all([put({'type': 'A'})])" in serialized
    assert "take('B')" in serialized
    assert serialized.startswith('race([')


def test_list_of_effects_and_keyed_storage():
    effects = [Put({'type': 'A'}), Put({'type': 'B'})]

    assert serialize_effect(effects) == "put({'type': 'A'})\nput({'type': 'B'})"
    assert serialize_effect({'put': Put({'type': 'A'})}, 'put') == "put({'type': 'A'})"


def test_unknown_effects_fall_back_to_inspection():
    assert serialize_effect(Log('hi')) == "Log(message='hi')"
    assert serialize_effect(42) == '42'


def test_inspect_value_names_callables():
    def helper():
        pass

    assert inspect_value(helper) == 'helper'
    assert inspect_value(Increment) == 'Increment'
    assert inspect_value(lambda: None) == '<lambda>'
    assert inspect_value((1,)) == '(1,)'
