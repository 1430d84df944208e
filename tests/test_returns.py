import anyio
import pytest

from saga_expect.effects import Call, Fork, spawn
from saga_expect.expectations import SagaAssertionError
from saga_expect.testing import expect_saga


def saga():
    return {'foo': 'bar'}
    yield


@pytest.mark.asyncio
async def test_asserts_return_value():
    await expect_saga(saga).returns({'foo': 'bar'}).run()


@pytest.mark.asyncio
async def test_negative_return_assertion_passes():
    await expect_saga(saga).not_.returns({'hello': 'world'}).run()


@pytest.mark.asyncio
async def test_return_assertion_fails_with_a_diff():
    with pytest.raises(SagaAssertionError, match=r'(?i)expected the saga to return') as info:
        await expect_saga(saga).returns({'hello': 'world'}).run()

    message = str(info.value)
    assert '- Expected' in message
    assert '+ Received' in message
    assert "{'foo': 'bar'}" in message


@pytest.mark.asyncio
async def test_negative_return_assertion_fails():
    with pytest.raises(SagaAssertionError, match=r'(?i)expected the saga not to return'):
        await expect_saga(saga).not_.returns({'foo': 'bar'}).run()


@pytest.mark.asyncio
async def test_called_sagas_do_not_affect_return_value():
    def other_saga():
        return {'hello': 'world'}
        yield

    def local_saga():
        yield Call(other_saga)
        return {'foo': 'bar'}

    await expect_saga(local_saga).returns({'foo': 'bar'}).run()


@pytest.mark.asyncio
async def test_forked_sagas_do_not_affect_return_value():
    def other_saga():
        yield Call(anyio.sleep, 0.05)
        return {'hello': 'world'}

    def local_saga():
        yield Fork(other_saga)
        return {'foo': 'bar'}

    await expect_saga(local_saga).returns({'foo': 'bar'}).run(timeout=None)


@pytest.mark.asyncio
async def test_spawned_sagas_do_not_affect_return_value():
    def other_saga():
        yield Call(anyio.sleep, 0.05)
        return {'hello': 'world'}

    def local_saga():
        yield spawn(other_saga)
        return {'foo': 'bar'}

    await expect_saga(local_saga).returns({'foo': 'bar'}).run(timeout=None)


@pytest.mark.asyncio
async def test_failing_forked_sagas_do_not_affect_the_outcome():
    def other_saga():
        yield Call(anyio.sleep, 0)
        raise RuntimeError('background failure')

    def local_saga():
        yield Fork(other_saga)
        return {'foo': 'bar'}

    result = await expect_saga(local_saga).returns({'foo': 'bar'}).run()

    assert result.error is None
    assert [str(e) for e in result.fork_errors] == ['background failure']
