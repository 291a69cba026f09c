"""
crepl configuration
Session-wide settings shared by the loader, renderer and REPL
"""

import os
from dataclasses import dataclass, replace
from typing import Tuple


@dataclass(frozen=True)
class ReplConfig:
  """Immutable configuration for one REPL session"""
  prompt: str = "> "
  history_file: str = os.path.join("~", ".crepl_history")
  history_length: int = 1000
  # Seconds between two Ctrl+C presses that still count as "quit"
  interrupt_window: float = 2.0
  # Maximum bytes inspected when sniffing a returned pointer for a string
  string_scan_limit: int = 256
  compiler: str = "cc"
  cflags: Tuple[str, ...] = ("-shared", "-fPIC", "-O0", "-g")
  libraries: Tuple[str, ...] = ("m",)
  use_history: bool = True
  debug: bool = False


DEFAULT_CONFIG = ReplConfig()


def config_from_env(base: ReplConfig = DEFAULT_CONFIG) -> ReplConfig:
  """Apply environment overrides (currently only CC) to a config"""
  compiler = os.environ.get("CC")
  if compiler:
    return replace(base, compiler=compiler)
  return base
