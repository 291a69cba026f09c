"""
crepl - Main Entry Point
Interactive executor for native functions: load C code, then call its
functions by typing their name and literal arguments
"""

import sys
import argparse
import shlex
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from config import ReplConfig, config_from_env
from error_handling import LoadError
from interpreter import COMMAND_NAMES, Session, create_interpreter

VERSION = "crepl 0.3.0"

BANNER = """╔════════════════════════════════════════════════════════════╗
║          C REPL - Interactive C Function Executor          ║
╚════════════════════════════════════════════════════════════╝"""


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='crepl',
      description='Call functions of a C source file or shared library interactively',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s testlib.c              # Compile testlib.c and start the REPL
  %(prog)s libraylib.so           # Load a prebuilt shared library
  %(prog)s --debug testlib.c      # Show inferred types and addresses
  %(prog)s --cc clang testlib.c   # Compile with a different compiler
  node rect.js | %(prog)s libraylib.so   # Drive the REPL from a pipe
        """
  )

  parser.add_argument(
      'source',
      nargs='+',
      help='C source file or shared library to load'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for every stage'
  )

  parser.add_argument(
      '--cc',
      dest='compiler',
      help='C compiler used for .c sources (default: $CC or cc)'
  )

  parser.add_argument(
      '--cflags',
      help='Extra compiler flags, shell-quoted (e.g. "-O2 -DNDEBUG")'
  )

  parser.add_argument(
      '--no-history',
      action='store_true',
      help='Do not read or write the readline history file'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def build_config(args: argparse.Namespace) -> ReplConfig:
  """Resolve the session configuration from defaults, environment and flags"""
  config = config_from_env()
  if args.compiler:
    config = replace(config, compiler=args.compiler)
  if args.cflags:
    config = replace(config, cflags=config.cflags + tuple(shlex.split(args.cflags)))
  if args.no_history:
    config = replace(config, use_history=False)
  if args.debug:
    config = replace(config, debug=True)
  return config


def make_completer(session: Session) -> Callable[[str, int], Optional[str]]:
  """Complete builtin commands first, then functions of the current module"""
  matches: List[str] = []

  def completer(text: str, state: int) -> Optional[str]:
    if state == 0:
      matches.clear()
      matches.extend(cmd for cmd in COMMAND_NAMES if cmd.startswith(text))
      if not text.startswith(':'):
        # Ask the session each time: the catalog is replaced on reload
        matches.extend(session.catalog.complete(text))
    if state < len(matches):
      return matches[state]
    return None

  return completer


def setup_readline(session: Session, config: ReplConfig) -> None:
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  if config.use_history:
    history_file = os.path.expanduser(config.history_file)
    try:
      readline.read_history_file(history_file)
    except OSError:
      pass  # First time, no history yet, or permission denied
    readline.set_history_length(config.history_length)

    # Save history on exit
    import atexit
    atexit.register(save_history, history_file)

  readline.set_completer(make_completer(session))
  readline.parse_and_bind("tab: complete")


def save_history(history_file: str) -> None:
  try:
    readline.write_history_file(history_file)
  except OSError as e:
    print(f"Warning: could not save history to {history_file}: {e}", file=sys.stderr)


def run_interactive_mode(locator: str, config: ReplConfig) -> int:
  """Load the module and run the REPL until it terminates"""
  try:
    session = create_interpreter(locator, config)
  except LoadError as e:
    print(str(e), file=sys.stderr)
    return 1

  print(BANNER)
  print(f"\nSuccessfully loaded: {locator}")
  print("Type :help for commands, :quit or Ctrl+C twice to exit\n")

  if sys.stdin.isatty():
    setup_readline(session, config)

  try:
    return session.run()
  except KeyboardInterrupt:
    print("\nGoodbye!")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
  """Main entry point for crepl"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if len(args.source) == 2 and args.source[0] in ('0', '1'):
    print("Error: encrypted sources (0|1 <file>) are not supported by this build",
          file=sys.stderr)
    return 1
  if len(args.source) != 1:
    arg_parser.print_usage(sys.stderr)
    print("Error: expected exactly one source file", file=sys.stderr)
    return 1

  locator = args.source[0]
  if not Path(locator).exists():
    print(f"Error: Source file '{locator}' does not exist", file=sys.stderr)
    return 1

  return run_interactive_mode(locator, build_config(args))


if __name__ == "__main__":
  sys.exit(main())
