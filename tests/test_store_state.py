from dataclasses import dataclass

import pytest

from saga_expect.actions import Action
from saga_expect.effects import Put, Select, Take
from saga_expect.expectations import SagaAssertionError
from saga_expect.store import Store, reduce_actions
from saga_expect.testing import expect_saga


@dataclass
class Increment(Action):
    amount: int = 1


@dataclass
class Reset(Action):
    pass


def counter_reducer(state, action):
    match action:
        case Increment(amount=amount):
            return {**state, 'counter': state['counter'] + amount}
        case Reset():
            return {**state, 'counter': 0}
    return state


def counter_saga():
    yield Put(Increment())
    yield Put(Increment(amount=2))
    counter = yield Select(lambda state: state['counter'])
    return counter


def test_reduce_actions_folds_in_order():
    actions = [Increment(), Reset(), Increment(amount=5)]

    assert reduce_actions(counter_reducer, {'counter': 10}, actions) == {'counter': 5}
    assert reduce_actions(None, {'counter': 10}, actions) == {'counter': 10}


def test_store_dispatch_updates_state():
    store = Store(counter_reducer, {'counter': 0})
    store.dispatch(Increment(amount=3))

    assert store.get_state() == {'counter': 3}
    assert store.initial_state == {'counter': 0}


@pytest.mark.asyncio
async def test_final_state_assertion_passes():
    await (expect_saga(counter_saga)
           .with_reducer(counter_reducer, {'counter': 0})
           .has_final_state({'counter': 3})
           .returns(3)
           .run())


@pytest.mark.asyncio
async def test_final_state_assertion_fails_with_a_diff():
    with pytest.raises(SagaAssertionError, match='Expected saga to have final store state.') as info:
        await (expect_saga(counter_saga)
               .with_reducer(counter_reducer, {'counter': 0})
               .has_final_state({'counter': 4})
               .run())

    message = str(info.value)
    assert "- {'counter': 4}" in message
    assert "+ {'counter': 3}" in message


@pytest.mark.asyncio
async def test_negative_final_state_assertion():
    await (expect_saga(counter_saga)
           .with_reducer(counter_reducer, {'counter': 0})
           .not_.has_final_state({'counter': 0})
           .run())

    with pytest.raises(SagaAssertionError, match='Expected saga not to have final store state.'):
        await (expect_saga(counter_saga)
               .with_reducer(counter_reducer, {'counter': 0})
               .not_.has_final_state({'counter': 3})
               .run())


@pytest.mark.asyncio
async def test_with_state_without_reducer_keeps_state():
    def saga():
        return (yield Select())

    await (expect_saga(saga)
           .with_state({'user': 'ann'})
           .returns({'user': 'ann'})
           .has_final_state({'user': 'ann'})
           .run())


@pytest.mark.asyncio
async def test_queued_actions_reach_the_reducer():
    def saga():
        yield Take(Reset)
        yield Put(Increment())

    result = await (expect_saga(saga)
                    .with_reducer(counter_reducer, {'counter': 7})
                    .dispatch(Reset())
                    .has_final_state({'counter': 1})
                    .run())

    assert result.dispatch_log == [Reset(), Increment()]
