"""
Utilities module for crepl
Text-scanning helpers shared by return-type inference and the function catalog
"""

from typing import Optional


# Characters that end a C declaration when scanning backwards from a name
DECLARATION_BOUNDARIES = frozenset(";{}\n")


# ==================== CHARACTER CLASSES ====================

def c_isspace(ch: str) -> bool:
  """C locale isspace"""
  return ch in " \t\n\v\f\r"


def c_isprint(ch: str) -> bool:
  """C locale isprint: printable ASCII including space"""
  return " " <= ch <= "~"


def is_identifier_start(ch: str) -> bool:
  return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def is_identifier_char(ch: str) -> bool:
  return is_identifier_start(ch) or ("0" <= ch <= "9")


# ==================== DECLARATION SCANNING ====================

def find_call_pattern(source: str, name: str) -> int:
  """
  Find the first "name(" in source text

  This is a plain substring search, so it may also hit the tail of a longer
  identifier or a call site.

  Returns:
    Index of the first character of name, or -1
  """
  if not source or not name:
    return -1
  return source.find(f"{name}(")


def find_declaration_start(source: str, position: int) -> int:
  """
  Walk backwards from position to the nearest declaration boundary

  Returns:
    Index just after the boundary character, or 0 at the start of text
  """
  p = position
  while p > 0 and source[p] not in DECLARATION_BOUNDARIES:
    p -= 1
  if source[p] in DECLARATION_BOUNDARIES:
    p += 1
  return p


def find_matching_paren(source: str, open_index: int) -> int:
  """
  Find the index just past the parenthesis closing the one at open_index

  Unbalanced input runs to the end of the text.
  """
  depth = 1
  p = open_index + 1
  while p < len(source) and depth > 0:
    if source[p] == "(":
      depth += 1
    elif source[p] == ")":
      depth -= 1
    p += 1
  return p


def extract_return_type_text(source: str, name: str) -> Optional[str]:
  """
  Extract the text in front of the first "name(" up to its declaration boundary

  Examples:
    extract_return_type_text("int add(int a, int b) {}", "add") -> "int"
    extract_return_type_text("}\\nchar* echo_ret(char *m)", "echo_ret") -> "char*"
    extract_return_type_text("add(1, 2);", "add") -> None
  """
  index = find_call_pattern(source, name)
  if index <= 0:
    return None

  p = index - 1
  while p > 0 and c_isspace(source[p]):
    p -= 1
  end = p + 1

  start = find_declaration_start(source, p)
  text = source[start:end].strip(" \t\n\v\f\r")
  return text or None


def collapse_whitespace(text: str) -> str:
  """Collapse whitespace runs to one space and drop leading whitespace"""
  parts = []
  last_was_space = False
  for ch in text:
    if c_isspace(ch):
      if not last_was_space and parts:
        parts.append(" ")
      last_was_space = True
    else:
      parts.append(ch)
      last_was_space = False
  return "".join(parts)


def extract_signature_text(source: str, name: str) -> Optional[str]:
  """
  Reconstruct a one-line signature for name from the first "name(" onwards

  Examples:
    extract_signature_text("int add(int a,\\n    int b) {", "add") -> "int add(int a, int b)"
  """
  index = find_call_pattern(source, name)
  if index < 0:
    return None

  start = find_declaration_start(source, index)
  while start < len(source) and c_isspace(source[start]):
    start += 1

  end = find_matching_paren(source, index + len(name))
  return collapse_whitespace(source[start:end])
