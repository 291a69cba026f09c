"""
crepl function catalog
Lists the callable functions of a loaded module by scanning its source text
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from utilities import extract_signature_text

# Identifier run followed, after optional whitespace, by an opening paren
CANDIDATE_PATTERN = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)[ \t\n\v\f\r]*\(")

Resolver = Callable[[str], Optional[int]]


@dataclass(frozen=True)
class FunctionCatalogEntry:
  name: str
  signature: str


class FunctionCatalog:
  """
  Source-scanning view of the functions a module exports

  Candidates that the module cannot resolve (keywords, prototypes of
  external routines, call sites of library functions) are skipped. The scan
  does not understand comments or string literals.
  """

  def __init__(self, source: str, resolve: Resolver, debug: bool = False):
    self.source = source or ""
    self.resolve = resolve
    self.debug = debug

  def candidates(self) -> Iterator[str]:
    """Every identifier followed by '(' in source order, duplicates included"""
    for match in CANDIDATE_PATTERN.finditer(self.source):
      yield match.group(1)

  def entries(self) -> List[FunctionCatalogEntry]:
    """Resolved functions in first-occurrence order, one entry per name"""
    seen = set()
    found = []
    for name in self.candidates():
      if name in seen:
        continue
      seen.add(name)
      if not self.resolve(name):
        continue
      signature = extract_signature_text(self.source, name)
      if signature is None:
        continue
      if self.debug:
        print(f"[debug] catalog: {name} -> {signature}")
      found.append(FunctionCatalogEntry(name, signature))
    return found

  def names(self) -> List[str]:
    return [entry.name for entry in self.entries()]

  def complete(self, prefix: str) -> List[str]:
    return [name for name in self.names() if name.startswith(prefix)]


def format_catalog(entries: List[FunctionCatalogEntry]) -> str:
  """Boxed listing printed by :list"""
  if not entries:
    return "\nNo callable functions found.\n"

  title = f"  Available Functions ({len(entries)})"
  lines = [
      "",
      "╔" + "═" * 60 + "╗",
      "║" + title.ljust(60) + "║",
      "╠" + "═" * 60 + "╣",
  ]
  lines.extend(f"  {entry.signature}" for entry in entries)
  lines.append("╚" + "═" * 60 + "╝")
  lines.append("")
  return "\n".join(lines)
