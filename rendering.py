"""
crepl result rendering
Formats the raw bytes of a native return value for the operator
"""

import ctypes
from typing import Callable, Optional

from utilities import c_isprint, c_isspace
from values import TypeTag

RESULT_PREFIX = "→ "

# Reads at most limit bytes starting at address, stopping after a NUL byte
MemoryReader = Callable[[int, int], bytes]


def read_c_string(address: int, limit: int) -> bytes:
  """Read a NUL-terminated string one byte at a time, never past limit"""
  data = bytearray()
  for offset in range(limit):
    byte = ctypes.string_at(address + offset, 1)
    if byte == b"\0":
      break
    data += byte
  return bytes(data)


def decode_raw(tag: TypeTag, raw: bytes):
  """Python value of raw return bytes laid out as tag"""
  return tag.ctype.from_buffer_copy(raw[:tag.size]).value


def render_char(code: int) -> str:
  ch = chr(code & 0xFF)
  if c_isprint(ch):
    return f"'{ch}' ({code})"
  return f"{code} (non-printable)"


def render_pointer(address: Optional[int], read_memory: MemoryReader, limit: int) -> str:
  """
  Render a returned pointer

  A pointer to a short run of printable text is shown as a string; anything
  else is shown as an address. Short binary data can be mistaken for text.
  """
  if not address:
    return "NULL"

  data = read_memory(address, limit)
  text = data.decode("latin-1")
  if any(not (c_isprint(ch) or c_isspace(ch)) for ch in text):
    return hex(address)
  if 0 < len(text) < limit:
    return f'"{text}"'
  return hex(address)


class ResultRenderer:
  """Turns (tag, raw bytes) into one line of text"""

  def __init__(self, read_memory: MemoryReader = read_c_string, string_scan_limit: int = 256):
    self.read_memory = read_memory
    self.string_scan_limit = string_scan_limit

  def render(self, tag: TypeTag, raw: Optional[bytes]) -> Optional[str]:
    """Return the display line, or None for void"""
    if tag is TypeTag.VOID:
      return None
    if raw is None or len(raw) < tag.size:
      return RESULT_PREFIX + "[error: no result available]"

    value = decode_raw(tag, raw)
    if tag is TypeTag.SCHAR:
      body = render_char(value)
    elif tag in (TypeTag.SINT32, TypeTag.SINT64):
      body = str(value)
    elif tag in (TypeTag.FLOAT32, TypeTag.FLOAT64):
      body = f"{value:f}"
    elif tag is TypeTag.POINTER:
      body = render_pointer(value, self.read_memory, self.string_scan_limit)
    else:
      body = f"[unknown type, size={tag.size}]"
    return RESULT_PREFIX + body


def render_result(tag: TypeTag, raw: Optional[bytes]) -> Optional[str]:
  """Render with the process memory reader"""
  return ResultRenderer().render(tag, raw)
