"""
Host provider interfaces for registers, options and environment variables,
with in-memory and process-backed defaults.
"""
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from vimscript.vimscript_datatypes import Scope
from vimscript.vimscript_errors import VimNameError
from vimscript.vimscript_values import VimNumber, VimString, VimValue, to_vim


class RegisterProvider(ABC):
    @abstractmethod
    def get_register(self, name: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_register(self, name: str, text: str) -> None:
        ...


class OptionProvider(ABC):
    """Named option values; scope None reads the effective (local, then global) value."""

    @abstractmethod
    def get_option(self, name: str, scope: Optional[Scope] = None) -> Optional[VimValue]:
        ...

    @abstractmethod
    def set_option(self, name: str, value: VimValue, scope: Optional[Scope] = None) -> None:
        ...


class EnvironmentProvider(ABC):
    @abstractmethod
    def get_env(self, name: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_env(self, name: str, value: str) -> None:
        ...

    @abstractmethod
    def unset_env(self, name: str) -> None:
        ...


# =================================================================
# Defaults
# =================================================================

class MemoryRegisters(RegisterProvider):
    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self.registers: Dict[str, str] = dict(initial or {})

    def get_register(self, name: str) -> Optional[str]:
        return self.registers.get(name)

    def set_register(self, name: str, text: str) -> None:
        self.registers[name] = text


DEFAULT_OPTIONS: Dict[str, Any] = {
    "ignorecase": 0,
    "smartcase": 0,
    "incsearch": 0,
    "hlsearch": 0,
    "wrapscan": 1,
    "scrolloff": 0,
    "tabstop": 8,
    "shiftwidth": 8,
    "history": 50,
    "clipboard": "",
    "matchpairs": "(:),{:},[:]",
}


class MemoryOptions(OptionProvider):
    """Options kept in dictionaries; only names known at construction exist.

    A written value keeps the kind of the option: Number options coerce
    with the numeric-prefix rule, String options take the string form.
    """
    def __init__(self, defaults: Optional[Mapping[str, Any]] = None):
        source = DEFAULT_OPTIONS if defaults is None else defaults
        self.global_values: Dict[str, VimValue] = {k: to_vim(v) for k, v in source.items()}
        self.local_values: Dict[str, VimValue] = {}

    def get_option(self, name: str, scope: Optional[Scope] = None) -> Optional[VimValue]:
        if name not in self.global_values:
            return None
        if scope is Scope.GLOBAL:
            return self.global_values[name]
        return self.local_values.get(name, self.global_values[name])

    def set_option(self, name: str, value: VimValue, scope: Optional[Scope] = None) -> None:
        current = self.global_values.get(name)
        if current is None:
            raise VimNameError(f"E518: Unknown option: {name}")
        if isinstance(current, VimNumber):
            value = VimNumber(value.as_number())
        else:
            value = VimString(value.as_string())
        if scope is Scope.LOCAL:
            self.local_values[name] = value
            return
        self.global_values[name] = value
        if scope is None:
            self.local_values.pop(name, None)


class OsEnvironment(EnvironmentProvider):
    """Reads and writes the process environment."""

    def get_env(self, name: str) -> Optional[str]:
        return os.environ.get(name)

    def set_env(self, name: str, value: str) -> None:
        os.environ[name] = value

    def unset_env(self, name: str) -> None:
        os.environ.pop(name, None)


__all__ = [
    "RegisterProvider", "OptionProvider", "EnvironmentProvider",
    "MemoryRegisters", "MemoryOptions", "OsEnvironment", "DEFAULT_OPTIONS",
]
