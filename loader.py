"""
crepl code provider
Loads native code for a session: a prebuilt shared library, or a C source
file compiled on the fly with the system compiler
"""

import ctypes
import ctypes.util
import os
import shutil
import subprocess
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional

from config import DEFAULT_CONFIG, ReplConfig
from error_handling import LoadError

SOURCE_SUFFIXES = (".c",)


# ============================================================================
# SYMBOL OWNERSHIP
# ============================================================================

class DlInfo(ctypes.Structure):
  _fields_ = [
      ("dli_fname", ctypes.c_char_p),
      ("dli_fbase", ctypes.c_void_p),
      ("dli_sname", ctypes.c_char_p),
      ("dli_saddr", ctypes.c_void_p),
  ]


def _load_dladdr():
  """dladdr from the running process, or None where it does not exist"""
  if os.name == "nt":
    return None
  for name in (None, ctypes.util.find_library("dl")):
    try:
      dladdr = ctypes.CDLL(name).dladdr
    except (OSError, AttributeError):
      continue
    dladdr.argtypes = [ctypes.c_void_p, ctypes.POINTER(DlInfo)]
    dladdr.restype = ctypes.c_int
    return dladdr
  return None


_dladdr = _load_dladdr()


def defining_object(address: int) -> Optional[str]:
  """
  Path of the shared object that contains address

  Returns None when the address is not inside any loaded object, or when the
  platform has no dladdr.
  """
  if _dladdr is None:
    return None
  info = DlInfo()
  if not _dladdr(address, ctypes.byref(info)) or not info.dli_fname:
    return None
  return os.path.realpath(os.fsdecode(info.dli_fname))


class ModuleHandle:
  """
  Loaded native code plus the source text it came from

  A handle is never mutated after loading; a reload produces a new one.
  """

  def __init__(self, locator: str, library_path: str, library: ctypes.CDLL,
               source: str = "", build_dir: Optional[str] = None):
    self.locator = locator
    self.library_path = library_path
    self.source = source
    self._library = library
    self._build_dir = build_dir
    self._object_path = os.path.realpath(library_path)
    self.closed = False

  def resolve(self, name: str) -> Optional[int]:
    """
    Address of a symbol exported by this module, or None

    The dynamic loader also finds symbols of the module's dependencies
    (printf, strlen); those do not belong to the module and are rejected.
    """
    if self.closed or not name:
      return None
    try:
      function = getattr(self._library, name)
    except AttributeError:
      return None
    address = ctypes.cast(function, ctypes.c_void_p).value
    if not address or not self.defines(address):
      return None
    return address

  def defines(self, address: int) -> bool:
    # GetProcAddress never searches dependencies, so nothing to check there
    if _dladdr is None:
      return True
    return defining_object(address) == self._object_path

  def close(self) -> None:
    # ctypes cannot dlclose portably; dropping the reference and the private
    # build directory is all that is done here
    if self.closed:
      return
    self.closed = True
    self._library = None
    if self._build_dir:
      shutil.rmtree(self._build_dir, ignore_errors=True)

  def __repr__(self) -> str:
    return f"ModuleHandle({self.locator!r}, library={self.library_path!r})"


def read_source(path: Path) -> str:
  try:
    return path.read_text(encoding="utf-8")
  except UnicodeDecodeError as e:
    raise LoadError(f"Cannot decode file '{path}': {e}",
                    hint="Make sure the file is a text file with UTF-8 encoding") from e
  except OSError as e:
    raise LoadError(f"Failed to read {path}: {e}") from e


def compiler_command(source_path: Path, output_path: Path, config: ReplConfig) -> List[str]:
  command = [config.compiler, *config.cflags]
  command.append(f"-I{source_path.parent}")
  command.extend(["-o", str(output_path), str(source_path)])
  command.extend(f"-l{library}" for library in config.libraries)
  return command


def compile_source(source_path: Path, config: ReplConfig) -> Path:
  """
  Compile a C file into a shared library inside a fresh temporary directory

  The output name is unique per call so a reload is never served the
  dynamic loader's cached handle of an earlier build.
  """
  build_dir = Path(tempfile.mkdtemp(prefix="crepl-"))
  output_path = build_dir / f"{source_path.stem}-{uuid.uuid4().hex[:8]}.so"
  command = compiler_command(source_path, output_path, config)
  if config.debug:
    print(f"[debug] compiling: {' '.join(command)}")

  try:
    completed = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
  except FileNotFoundError as e:
    shutil.rmtree(build_dir, ignore_errors=True)
    raise LoadError(f"C compiler '{config.compiler}' not found",
                    hint="Install a C compiler or set CC / --cc") from e

  if completed.returncode != 0:
    shutil.rmtree(build_dir, ignore_errors=True)
    details = (completed.stderr or completed.stdout).strip()
    raise LoadError(f"Failed to compile '{source_path}'\n{details}")
  return output_path


def open_library(path: Path) -> ctypes.CDLL:
  try:
    return ctypes.CDLL(str(path))
  except OSError as e:
    raise LoadError(f"could not load '{path}': {e}") from e


def load_module(locator: str, config: ReplConfig = DEFAULT_CONFIG) -> ModuleHandle:
  """
  Load the module named by locator

  A .c file is compiled first. Any other path is opened as a shared library
  and its source text is taken from a sibling .c file when there is one.

  Raises:
    LoadError if the file is missing or cannot be compiled or loaded
  """
  path = Path(locator)
  if not path.exists():
    raise LoadError(f"Source file '{locator}' not found",
                    hint="Check the file path and make sure the file exists")

  if path.suffix in SOURCE_SUFFIXES:
    source = read_source(path)
    library_path = compile_source(path, config)
    try:
      library = open_library(library_path)
    except LoadError:
      shutil.rmtree(library_path.parent, ignore_errors=True)
      raise
    return ModuleHandle(locator, str(library_path), library, source, str(library_path.parent))

  library = open_library(path.resolve())
  sibling = path.with_suffix(".c")
  source = read_source(sibling) if sibling.exists() else ""
  if config.debug:
    print(f"[debug] loaded {path} (source: {sibling if source else 'none'})")
  return ModuleHandle(locator, str(path), library, source)


def compiler_available(config: ReplConfig = DEFAULT_CONFIG) -> bool:
  return shutil.which(config.compiler) is not None


def describe_platform() -> str:
  return f"{os.name}, pointer size {ctypes.sizeof(ctypes.c_void_p)} bytes"
