"""
crepl session
The command/session state machine: reads lines, runs built-in commands and
drives native calls through the tokenizer, builder, executor and renderer
"""

import sys
import time
from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, Optional, TextIO

from catalog import FunctionCatalog, format_catalog
from config import DEFAULT_CONFIG, ReplConfig
from error_handling import (
    RECOVERABLE_ERRORS,
    CReplError,
    InvocationFault,
    LoadError,
    SymbolNotFoundError,
)
from ffi import ForeignCallExecutor, create_executor
from loader import ModuleHandle, describe_platform, load_module
from parsing import LineTokenizer, create_tokenizer
from rendering import ResultRenderer
from semantics import CallRequestBuilder, create_analyzer
from values import Arena, TypeTag

HELP_TEXT = """
Builtin commands:
  :help, :h   - Show this help message
  :quit, :q   - Exit the REPL
  :info       - Show compilation info
  :list, :l   - List all available functions
  :reload, :r - Reload and recompile source file

Function call format:
  function_name [args...]

Supported argument types:
  - Integers: 42, -10, 0xFF, 100L (long)
  - Floats: 3.14, 2.5f (float), 1.0 (double)
  - Strings: "hello world"
  - Characters: 'a', 'Z', '\\n'
"""

COMMAND_NAMES = (":help", ":h", ":quit", ":q", ":info", ":list", ":l", ":reload", ":r")


class SessionState(Enum):
  AWAITING_INPUT = "awaiting input"
  DISPATCHING = "dispatching"
  RELOADING = "reloading"
  TERMINATED = "terminated"


ModuleProvider = Callable[[str, ReplConfig], ModuleHandle]


class Session:
  """
  One interactive session over one module

  The session owns the module handle, the arena and the catalog. Each line
  is handled completely before the next one is read.
  """

  def __init__(
      self,
      locator: str,
      module: ModuleHandle,
      executor: Optional[ForeignCallExecutor] = None,
      provider: ModuleProvider = load_module,
      config: ReplConfig = DEFAULT_CONFIG,
      renderer: Optional[ResultRenderer] = None,
      out: Optional[TextIO] = None,
      clock: Callable[[], float] = time.monotonic,
  ):
    self.locator = locator
    self.module = module
    self.config = config
    self.debug = config.debug
    self.executor = executor if executor is not None else create_executor(self.debug)
    self.provider = provider
    self.renderer = renderer or ResultRenderer(string_scan_limit=config.string_scan_limit)
    self.out = out if out is not None else sys.stdout
    self.clock = clock

    self.tokenizer: LineTokenizer = create_tokenizer(self.debug)
    self.builder: CallRequestBuilder = create_analyzer(self.debug)
    self.arena = Arena()
    self.catalog = FunctionCatalog(module.source, module.resolve, self.debug)
    self.state = SessionState.AWAITING_INPUT
    self.exit_code = 0

    self.calls_made = 0
    self.reloads = 0
    self._last_interrupt: Optional[float] = None

    self.commands: Dict[str, Callable[[], None]] = {
        ":help": self.cmd_help,
        ":h": self.cmd_help,
        ":quit": self.cmd_quit,
        ":q": self.cmd_quit,
        ":info": self.cmd_info,
        ":list": self.cmd_list,
        ":l": self.cmd_list,
        ":reload": self.cmd_reload,
        ":r": self.cmd_reload,
    }

  # ==================== OUTPUT ====================

  def emit(self, text: str = "") -> None:
    print(text, file=self.out)

  def trace(self, text: str) -> None:
    if self.debug:
      print(f"[debug] {text}", file=self.out)

  @property
  def terminated(self) -> bool:
    return self.state is SessionState.TERMINATED

  # ==================== LINE HANDLING ====================

  def handle_line(self, line: str) -> SessionState:
    """
    Process one input line and return the resulting state

    Per-line errors are reported here. LoadError from a reload and
    InvocationFault propagate to the caller and end the session.
    """
    if self.terminated:
      return self.state

    text = line.strip()
    if not text:
      return self.state

    if text.startswith(":"):
      self.run_command(text)
      return self.state

    self.state = SessionState.DISPATCHING
    try:
      with self.arena.scope():
        self.dispatch(text)
    except RECOVERABLE_ERRORS as e:
      self.emit(str(e))
    finally:
      if self.state is SessionState.DISPATCHING:
        self.state = SessionState.AWAITING_INPUT
    return self.state

  def run_command(self, text: str) -> None:
    command = self.commands.get(text)
    if command is None:
      self.emit("ERROR: unknown command. Type :help for available commands")
      return
    command()

  def dispatch(self, text: str) -> None:
    """Tokenize, build, resolve, invoke and render one call"""
    request = self.builder.build(self.tokenizer.tokenize(text), self.arena, self.module.source)
    self.trace(f"inferred {request}")

    address = self.module.resolve(request.callee)
    if not address:
      raise SymbolNotFoundError(request.callee)
    self.trace(f"{request.callee} resolved to {hex(address)}")

    signature = self.executor.prepare_signature(request.arg_tags, request.return_tag)
    storage = None
    if request.return_tag is not TypeTag.VOID:
      storage = self.arena.alloc(request.return_tag)

    self.calls_made += 1
    self.executor.invoke(signature, address, request.slots, storage)

    raw = bytes(storage) if storage is not None else None
    rendered = self.renderer.render(request.return_tag, raw)
    if rendered is not None:
      self.emit(rendered)

  # ==================== BUILT-IN COMMANDS ====================

  def cmd_help(self) -> None:
    self.emit(HELP_TEXT)

  def cmd_quit(self) -> None:
    self.state = SessionState.TERMINATED

  def cmd_info(self) -> None:
    self.emit("\nCompilation info:")
    self.emit(f"  Source: {self.locator}")
    self.emit(f"  Library: {self.module.library_path}")
    self.emit(f"  Platform: {describe_platform()}")
    self.emit(f"  Arena: {self.arena.stats()}")
    self.emit(f"  Calls made: {self.calls_made}, reloads: {self.reloads}")
    self.emit()

  def cmd_list(self) -> None:
    self.emit(format_catalog(self.catalog.entries()))

  def cmd_reload(self) -> None:
    """
    Replace the module with a freshly loaded one

    There is no fallback: if loading fails the session ends.
    """
    self.state = SessionState.RELOADING
    self.module.close()
    self.arena.reset()
    try:
      module = self.provider(self.locator, self.config)
    except LoadError:
      self.state = SessionState.TERMINATED
      self.exit_code = 1
      raise
    self.module = module
    self.catalog = FunctionCatalog(module.source, module.resolve, self.debug)
    self.reloads += 1
    self.emit(f"Reloaded: {self.locator}")
    self.state = SessionState.AWAITING_INPUT

  # ==================== INTERRUPTS ====================

  def request_interrupt(self) -> SessionState:
    """
    Handle a Ctrl+C delivered between lines

    A second request inside the configured window ends the session.
    """
    now = self.clock()
    last = self._last_interrupt
    if last is not None and now - last <= self.config.interrupt_window:
      self.emit("\nExiting...")
      self.state = SessionState.TERMINATED
      return self.state
    self._last_interrupt = now
    self.emit("\nPress Ctrl+C again within "
              f"{self.config.interrupt_window:g} seconds to quit (or type :quit)")
    return self.state

  # ==================== MAIN LOOP ====================

  def run(self, read_line: Optional[Callable[[str], str]] = None) -> int:
    """
    Read and handle lines until the session terminates

    Args:
      read_line: Called with the prompt; raises EOFError at end of input

    Returns:
      Process exit code
    """
    read_line = read_line or input
    while not self.terminated:
      try:
        line = read_line(self.config.prompt)
      except KeyboardInterrupt:
        self.request_interrupt()
        continue
      except EOFError:
        self.emit()
        break

      try:
        self.handle_line(line)
      except LoadError as e:
        print(str(e), file=sys.stderr)
        return 1
      except InvocationFault as e:
        print(str(e), file=sys.stderr)
        self.state = SessionState.TERMINATED
        return 1
      except CReplError as e:
        self.emit(str(e))

    if self.exit_code == 0:
      self.emit("Goodbye!")
    self.state = SessionState.TERMINATED
    self.module.close()
    return self.exit_code


def create_interpreter(locator: str, config: ReplConfig = DEFAULT_CONFIG,
                       provider: ModuleProvider = load_module,
                       executor: Optional[ForeignCallExecutor] = None,
                       out: Optional[TextIO] = None) -> Session:
  """Factory function: load the module and open a session over it"""
  module = provider(locator, config)
  return Session(locator, module, executor=executor, provider=provider, config=config, out=out)


def create_debug_interpreter(locator: str, config: ReplConfig = DEFAULT_CONFIG, **kwargs) -> Session:
  """Factory function returning a session with debug output"""
  return create_interpreter(locator, replace(config, debug=True), **kwargs)
