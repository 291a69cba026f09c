"""
Error handling for crepl with operator-facing messages and hints
Per-line errors are reported and the session continues; load failures
and native faults end the session
"""

from typing import Dict, List, Optional


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_error_report(
    kind: str,
    message: str,
    hint: Optional[str] = None,
    got: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
  """Create an immutable error report structure"""
  return {
      'kind': kind,
      'message': message,
      'hint': hint,
      'got': got,
      'suggestions': suggestions or []
  }


def format_error_report(report: Dict) -> str:
  """Format an error report the way the REPL prints it"""
  text = f"ERROR: {report['message']}"

  if report['got']:
    text += f"\n  Got: {report['got']}"

  if report['hint']:
    text += f"\nHint: {report['hint']}"

  for suggestion in report['suggestions']:
    text += f"\n  - {suggestion}"

  return text


def suggest_for_token(raw: str) -> List[str]:
  """Generate suggestions for an argument token that is not a literal"""
  suggestions = []

  if raw[:1].isalpha() or raw[:1] == "_":
    suggestions.append(f"Quote it to pass a string: \"{raw}\"")

  if raw.startswith('"') and not raw.endswith('"'):
    suggestions.append("Close the string literal with a double quote")

  if raw.startswith("'") and not raw.endswith("'"):
    suggestions.append("Close the character literal with a single quote")

  if raw[:1].isdigit() and not raw.isdigit():
    suggestions.append("Numeric suffixes are L/l (long) and f/F (float)")

  return suggestions


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class CReplError(Exception):
  """Base class for every error the REPL reports"""
  kind = "error"

  def __init__(self, message: str, hint: Optional[str] = None,
               got: Optional[str] = None, suggestions: Optional[List[str]] = None):
    self.message = message
    self.hint = hint
    self.got = got
    self.suggestions = suggestions or []
    super().__init__(message)

  def report(self) -> Dict:
    return make_error_report(self.kind, self.message, self.hint, self.got, self.suggestions)

  def __str__(self) -> str:
    return format_error_report(self.report())


class TokenizeError(CReplError):
  """Malformed literal or a line that does not start with an identifier"""
  kind = "tokenize"


class CallBuildError(CReplError):
  """An argument token that is not a literal"""
  kind = "call-build"


class SymbolNotFoundError(CReplError):
  """The callee is not exported by the loaded module"""
  kind = "symbol"

  def __init__(self, name: str):
    self.name = name
    super().__init__(
        f"function '{name}' not found",
        hint="Make sure the function is defined and not static"
    )


class SignaturePreparationError(CReplError):
  """The executor rejected the assembled call signature"""
  kind = "signature"


class InvocationFault(CReplError):
  """The native callee faulted in a way that surfaced as an exception"""
  kind = "fault"


class LoadError(CReplError):
  """The code provider could not compile or load the module"""
  kind = "load"


# Errors after which the session keeps reading lines
RECOVERABLE_ERRORS = (
    TokenizeError,
    CallBuildError,
    SymbolNotFoundError,
    SignaturePreparationError,
)
