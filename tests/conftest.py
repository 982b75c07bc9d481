import pytest

from vimscript import MemoryOptions, MemoryRegisters, ScriptRunner
from vimscript.vimscript_providers import EnvironmentProvider


class DictEnvironment(EnvironmentProvider):
    def __init__(self):
        self.values = {}

    def get_env(self, name):
        return self.values.get(name)

    def set_env(self, name, value):
        self.values[name] = value

    def unset_env(self, name):
        self.values.pop(name, None)


@pytest.fixture
def environment():
    return DictEnvironment()


@pytest.fixture
def runner(environment):
    """Returns a new ScriptRunner for each test."""
    return ScriptRunner(registers=MemoryRegisters(), options=MemoryOptions(),
                        environment=environment)
