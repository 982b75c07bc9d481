"""
Engine configuration: defaults, mappings and YAML files.
"""
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml


@dataclass
class EngineConfig:
    maxfuncdepth: int = 100
    # Recursion bound for rendering nested values.
    max_render_depth: int = 100
    # Option consulted by comparisons without a # or ? suffix.
    ignorecase_option: str = "ignorecase"
    log_level: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'EngineConfig':
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"Engine configuration must be a mapping, got {type(data).__name__}")
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        for key in ("maxfuncdepth", "max_render_depth"):
            if key in data and (not isinstance(data[key], int) or data[key] < 1):
                raise ValueError(f"{key} must be a positive integer, got {data[key]!r}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, text: str) -> 'EngineConfig':
        return cls.from_mapping(yaml.safe_load(text))

    @classmethod
    def load(cls, path: str | Path) -> 'EngineConfig':
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))

    def apply_logging(self) -> None:
        """Set the package logger level when `log_level` is configured."""
        if self.log_level:
            logging.getLogger("vimscript").setLevel(self.log_level.upper())


__all__ = ["EngineConfig"]
