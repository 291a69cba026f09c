"""
Native value tagging for crepl
TypeTag is the closed set of value shapes the REPL can pass and return;
the Arena owns every temporary created while handling one input line
"""

import ctypes
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple


# ============================================================================
# TYPE TAGS
# ============================================================================

class TypeTag(Enum):
  """Native representation of one argument or return slot"""
  VOID = ("void", None)
  SINT32 = ("int", ctypes.c_int32)
  SINT64 = ("long", ctypes.c_int64)
  FLOAT32 = ("float", ctypes.c_float)
  FLOAT64 = ("double", ctypes.c_double)
  SCHAR = ("char", ctypes.c_byte)
  POINTER = ("pointer", ctypes.c_void_p)

  def __init__(self, c_name: str, ctype: Optional[type]):
    self.c_name = c_name
    self.ctype = ctype

  @property
  def size(self) -> int:
    return ctypes.sizeof(self.ctype) if self.ctype is not None else 0

  def __str__(self) -> str:
    return self.c_name


@dataclass(frozen=True)
class ArgumentSlot:
  """One positional argument: its tag and the arena-owned ctypes payload"""
  tag: TypeTag
  payload: Any

  @property
  def value(self) -> Any:
    """Python view of the payload, for display and tests"""
    return self.payload.value


@dataclass
class CallRequest:
  """Everything needed to perform one native call"""
  callee: str
  slots: List[ArgumentSlot] = field(default_factory=list)
  return_tag: TypeTag = TypeTag.SINT32

  @property
  def arg_tags(self) -> Tuple[TypeTag, ...]:
    return tuple(slot.tag for slot in self.slots)

  def __str__(self) -> str:
    args = ", ".join(str(tag) for tag in self.arg_tags) or "void"
    return f"{self.return_tag} {self.callee}({args})"


# ============================================================================
# ARENA
# ============================================================================

class Arena:
  """
  Per-line allocation region

  Every ctypes object handed to a native call is kept alive here until the
  next reset. Reset drops all of them in one step; resetting an empty arena
  does nothing.
  """

  def __init__(self):
    self._blocks: List[Any] = []
    self.resets = 0
    self.high_water = 0
    self.total_allocations = 0

  def __len__(self) -> int:
    return len(self._blocks)

  @property
  def bytes_in_use(self) -> int:
    return sum(ctypes.sizeof(block) for block in self._blocks)

  def alloc(self, tag: TypeTag, value: Any = None) -> Any:
    """Allocate storage for one value of the given tag"""
    if tag.ctype is None:
      raise ValueError("cannot allocate storage for void")
    block = tag.ctype() if value is None else tag.ctype(value)
    return self._keep(block)

  def strdup(self, text: str) -> ctypes.c_void_p:
    """Copy text into a null-terminated arena buffer and return a pointer to it"""
    buffer = self._keep(ctypes.create_string_buffer(text.encode("utf-8")))
    return self._keep(ctypes.c_void_p(ctypes.addressof(buffer)))

  def reset(self) -> None:
    if not self._blocks:
      return
    self._blocks.clear()
    self.resets += 1

  @contextmanager
  def scope(self) -> Iterator["Arena"]:
    """Scoped call context: fresh on entry, released on every exit path"""
    self.reset()
    try:
      yield self
    finally:
      self.reset()

  def _keep(self, block: Any) -> Any:
    self._blocks.append(block)
    self.total_allocations += 1
    self.high_water = max(self.high_water, len(self._blocks))
    return block

  def stats(self) -> str:
    return (f"blocks={len(self._blocks)}, bytes={self.bytes_in_use}, "
            f"high_water={self.high_water}, allocations={self.total_allocations}, resets={self.resets}")
