import logging

import anyio
import pytest

from saga_expect.config import DEFAULT_CONFIG, load_config
from saga_expect.effects import Call, Fork
from saga_expect.testing import expect_saga


def test_defaults_without_environment():
    assert load_config(environ={}) == DEFAULT_CONFIG


def test_environment_variables_override_defaults():
    config = load_config(environ={
        'SAGA_EXPECT_TIMEOUT': '1.5',
        'SAGA_EXPECT_COLOR': 'yes',
        'SAGA_EXPECT_WARN_ON_TIMEOUT': '0',
    })

    assert config == {'timeout': 1.5, 'color': True, 'warn_on_timeout': False}


def test_timeout_can_be_disabled_from_environment():
    assert load_config(environ={'SAGA_EXPECT_TIMEOUT': 'none'})['timeout'] is None


def test_overrides_win_over_environment():
    config = load_config({'timeout': 2}, environ={'SAGA_EXPECT_TIMEOUT': '1'})

    assert config['timeout'] == 2


def test_unknown_override_is_rejected():
    with pytest.raises(KeyError):
        load_config({'colour': True}, environ={})


def slow_worker():
    yield Call(anyio.sleep, 5)


def saga_with_slow_fork():
    yield Fork(slow_worker)
    return 'done'


@pytest.mark.asyncio
async def test_timeout_cancels_pending_forks_and_warns(caplog):
    with caplog.at_level(logging.WARNING, logger='saga_expect.testing'):
        result = await expect_saga(saga_with_slow_fork).returns('done').run(timeout=0.05)

    assert result.timed_out
    assert 'did not finish within' in caplog.text


@pytest.mark.asyncio
async def test_timeout_warning_can_be_disabled(caplog):
    with caplog.at_level(logging.WARNING, logger='saga_expect.testing'):
        result = await (expect_saga(saga_with_slow_fork)
                        .with_config(timeout=0.05, warn_on_timeout=False)
                        .run())

    assert result.timed_out
    assert caplog.text == ''
