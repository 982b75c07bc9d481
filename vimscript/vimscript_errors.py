"""
Error types raised by the Vim script engine.

Every error a script can observe derives from VimScriptError and unwinds
through :try/:catch exactly like a user :throw.
"""
import re
from typing import Optional

_CODE_RE = re.compile(r"^(E\d+):")


class VimScriptError(Exception):
    """Base class for all catchable script errors."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        # Filled in by the executor with the innermost command that failed.
        self.command: Optional[str] = None
        self.throwpoint: str = ""

    @property
    def code(self) -> Optional[str]:
        m = _CODE_RE.match(self.message)
        return m.group(1) if m else None

    @property
    def exception_text(self) -> str:
        """The text a :catch pattern is matched against (v:exception)."""
        if self.command:
            return f"Vim({self.command}):{self.message}"
        return f"Vim:{self.message}"

    def __str__(self) -> str:
        return self.message


class VimNameError(VimScriptError):
    """Undefined variable or function."""


class VimTypeError(VimScriptError):
    """Wrong value kind: bad index coercion, slice size mismatch, etc."""


class VimRangeError(VimScriptError):
    """Index out of bounds, call depth exceeded."""


class VimPermissionError(VimScriptError):
    """Read-only binding, locked value or illegal name."""


class ScopeContextError(VimScriptError):
    """A scope or statement used outside its matching context."""


class UserError(VimScriptError):
    """Raised by :throw. The thrown text is the exception itself."""
    def __init__(self, value: str):
        super().__init__(value)
        self.value = value

    @property
    def exception_text(self) -> str:
        return self.value

    def uncaught_message(self) -> str:
        return f"E605: Exception not caught: {self.value}"


class ScriptFinished(Exception):
    """Unwinds to the top of the current script unit (:finish, interrupt).

    Not a VimScriptError, so :catch never sees it.
    """
    def __init__(self, interrupted: bool = False):
        super().__init__("finish")
        self.interrupted = interrupted


__all__ = [
    "VimScriptError",
    "VimNameError",
    "VimTypeError",
    "VimRangeError",
    "VimPermissionError",
    "ScopeContextError",
    "UserError",
    "ScriptFinished",
]
