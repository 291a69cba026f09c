"""
crepl call analysis
Turns tokens into a typed CallRequest and guesses the callee's return type
from the module's source text
"""

from typing import Callable, Dict, Iterable, Iterator, Optional

from error_handling import CallBuildError, TokenizeError, suggest_for_token
from parsing import Token, TokenKind
from utilities import extract_return_type_text
from values import Arena, ArgumentSlot, CallRequest, TypeTag


# ============================================================================
# ARGUMENT SLOTS
# ============================================================================

def _scalar_slot(tag: TypeTag) -> Callable[[Token, Arena], ArgumentSlot]:
  def build(token: Token, arena: Arena) -> ArgumentSlot:
    return ArgumentSlot(tag, arena.alloc(tag, token.value))
  return build


def _char_slot(token: Token, arena: Arena) -> ArgumentSlot:
  # c_byte wants a signed value; keep the bit pattern of the byte
  code = ord(token.value)
  if code > 0x7F:
    code -= 0x100
  return ArgumentSlot(TypeTag.SCHAR, arena.alloc(TypeTag.SCHAR, code))


def _string_slot(token: Token, arena: Arena) -> ArgumentSlot:
  return ArgumentSlot(TypeTag.POINTER, arena.strdup(token.value))


SLOT_BUILDERS: Dict[TokenKind, Callable[[Token, Arena], ArgumentSlot]] = {
    TokenKind.INT_LITERAL: _scalar_slot(TypeTag.SINT32),
    TokenKind.LONG_LITERAL: _scalar_slot(TypeTag.SINT64),
    TokenKind.FLOAT_LITERAL: _scalar_slot(TypeTag.FLOAT32),
    TokenKind.DOUBLE_LITERAL: _scalar_slot(TypeTag.FLOAT64),
    TokenKind.CHAR_LITERAL: _char_slot,
    TokenKind.STRING_LITERAL: _string_slot,
}


def build_argument_slot(token: Token, arena: Arena) -> ArgumentSlot:
  """Map one literal token to a tagged, arena-owned argument"""
  if not token.is_literal:
    raise CallBuildError(
        f"invalid argument token ({token.kind.value})",
        got=token.raw,
        suggestions=suggest_for_token(token.raw)
    )
  return SLOT_BUILDERS[token.kind](token, arena)


# ============================================================================
# RETURN TYPE INFERENCE
# ============================================================================

def classify_return_type(text: Optional[str]) -> TypeTag:
  """
  Classify declaration text in front of a function name

  Rules are applied in order and the fallback is int, so unusual spellings
  such as "long long" or "static double" are treated as int.
  """
  if not text:
    return TypeTag.SINT32
  rt = text.strip()
  if rt == "void":
    return TypeTag.VOID
  if "*" in rt:
    return TypeTag.POINTER
  if rt == "char":
    return TypeTag.SCHAR
  if rt in ("int", "short") or rt.startswith("signed") or rt.startswith("unsigned"):
    return TypeTag.SINT32
  if rt == "long":
    return TypeTag.SINT64
  if rt == "float":
    return TypeTag.FLOAT32
  if rt == "double":
    return TypeTag.FLOAT64
  return TypeTag.SINT32


def infer_return_type(name: str, source: Optional[str]) -> TypeTag:
  """Best-effort return type of name; never fails"""
  return classify_return_type(extract_return_type_text(source or "", name))


# ============================================================================
# CALL REQUEST BUILDER
# ============================================================================

class CallRequestBuilder:
  """Builds a CallRequest from a token stream"""

  def __init__(self, debug: bool = False):
    self.debug = debug

  def read_callee(self, tokens: Iterator[Token]) -> str:
    try:
      first = next(tokens, None)
    except TokenizeError as e:
      # A malformed literal in callee position is still not a function name
      raise TokenizeError("function name must be an identifier", got=e.got) from e
    if first is None or first.kind is not TokenKind.IDENTIFIER:
      raise TokenizeError(
          "function name must be an identifier",
          got=first.raw if first is not None else None
      )
    return first.value

  def build(self, tokens: Iterable[Token], arena: Arena,
            source: Optional[str] = None) -> CallRequest:
    """
    Build the request for one line

    Args:
      tokens: Token stream of the line, callee first
      arena: Arena that owns every argument payload
      source: Module source text used for return type inference

    Raises:
      TokenizeError if the line does not start with an identifier or a
      literal is malformed; CallBuildError for a non-literal argument
    """
    stream = iter(tokens)
    callee = self.read_callee(stream)
    slots = [build_argument_slot(token, arena) for token in stream]
    request = CallRequest(callee, slots, infer_return_type(callee, source))
    if self.debug:
      print(f"[debug] call request: {request}")
    return request


def create_analyzer(debug: bool = False) -> CallRequestBuilder:
  """Factory function returning a call request builder"""
  return CallRequestBuilder(debug=debug)


def create_debug_analyzer() -> CallRequestBuilder:
  """Factory function returning a debug call request builder"""
  return create_analyzer(debug=True)
