import pytest

from runner.src.models.block import Block, default_catalog
from runner.src.services.dispatcher import CommandDispatcher
from runner.src.services.executor import PipelineEngine
from runner.tests.fakes import TEST_TIMEOUT, FakeDevice


def make_blocks():
    return default_catalog() + [
        Block(id="ok_block", name="OK", commands=["echo ok"]),
        Block(id="ok_block_2", name="OK 2", commands=["echo ok2"]),
        Block(id="failing_block", name="Failing", commands=["false"]),
        Block(id="loop_echo", name="Loop Echo", commands=["echo $(loop_index)/$(loop_total)"]),
        Block(id="two_step", name="Two Step", commands=["step one", "step two"]),
    ]

@pytest.fixture
def device():
    return FakeDevice(outputs={"false": "Error: command failed"})

@pytest.fixture
def dispatcher(device):
    return CommandDispatcher(
        device,
        command_timeout=TEST_TIMEOUT,
        log_start_timeout=TEST_TIMEOUT,
        log_stop_timeout=TEST_TIMEOUT,
        match_grace_seconds=TEST_TIMEOUT,
    )

@pytest.fixture
def engine(dispatcher):
    return PipelineEngine(dispatcher, blocks=make_blocks(), default_sleep_ms=10)
