"""
An execution engine for parsed Vim script.

The package evaluates parse trees (see vimscript.vimscript_datatypes)
built by an external parser.
"""
from vimscript.vimscript_config import EngineConfig
from vimscript.vimscript_errors import (
    ScopeContextError, ScriptFinished, UserError, VimNameError, VimPermissionError,
    VimRangeError, VimScriptError, VimTypeError,
)
from vimscript.vimscript_interpreter import Evaluator
from vimscript.vimscript_providers import (
    EnvironmentProvider, MemoryOptions, MemoryRegisters, OptionProvider, OsEnvironment,
    RegisterProvider,
)
from vimscript.vimscript_runtime import (
    ExecutionResult, ScriptRunner, StdLib, VimHost, vim_api_method,
)
from vimscript.vimscript_scopes import ExecutionContext, Script

__version__ = "0.1.0"

__all__ = [
    "EngineConfig", "Evaluator", "ExecutionContext", "ExecutionResult", "Script",
    "ScriptRunner", "StdLib", "VimHost", "vim_api_method",
    "RegisterProvider", "OptionProvider", "EnvironmentProvider",
    "MemoryRegisters", "MemoryOptions", "OsEnvironment",
    "VimScriptError", "VimNameError", "VimTypeError", "VimRangeError",
    "VimPermissionError", "ScopeContextError", "UserError", "ScriptFinished",
]
