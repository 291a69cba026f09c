"""
crepl foreign-call executor
Builds a C function prototype at runtime with ctypes and calls a raw address
"""

import ctypes
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, Tuple

from error_handling import InvocationFault, SignaturePreparationError
from values import ArgumentSlot, TypeTag


@dataclass(frozen=True)
class PreparedSignature:
  """A call shape accepted by an executor"""
  arg_tags: Tuple[TypeTag, ...]
  return_tag: TypeTag
  prototype: Any = None

  def __str__(self) -> str:
    args = ", ".join(str(tag) for tag in self.arg_tags) or "void"
    return f"{self.return_tag} (*)({args})"


class ForeignCallExecutor(Protocol):
  """Capability that performs architecture-correct native calls"""

  def prepare_signature(self, arg_tags: Sequence[TypeTag], return_tag: TypeTag) -> PreparedSignature:
    ...

  def invoke(self, signature: PreparedSignature, address: int,
             slots: Sequence[ArgumentSlot], result_storage: Optional[Any]) -> None:
    ...


class CtypesExecutor:
  """Default-ABI executor backed by ctypes.CFUNCTYPE"""

  def __init__(self, debug: bool = False):
    self.debug = debug

  def prepare_signature(self, arg_tags: Sequence[TypeTag], return_tag: TypeTag) -> PreparedSignature:
    arg_tags = tuple(arg_tags)
    if TypeTag.VOID in arg_tags:
      raise SignaturePreparationError("void cannot be used as an argument type")
    try:
      prototype = ctypes.CFUNCTYPE(return_tag.ctype, *(tag.ctype for tag in arg_tags))
    except TypeError as e:
      raise SignaturePreparationError(f"could not prepare FFI call: {e}") from e
    signature = PreparedSignature(arg_tags, return_tag, prototype)
    if self.debug:
      print(f"[debug] prepared signature {signature}")
    return signature

  def invoke(self, signature: PreparedSignature, address: int,
             slots: Sequence[ArgumentSlot], result_storage: Optional[Any]) -> None:
    """
    Call address with the slot payloads

    The result is written into result_storage, which must be a ctypes object
    of the signature's return type; nothing is written for void.
    """
    if signature.prototype is None:
      raise SignaturePreparationError("signature was not prepared by this executor")
    if len(slots) != len(signature.arg_tags):
      raise SignaturePreparationError(
          f"signature expects {len(signature.arg_tags)} arguments, got {len(slots)}"
      )

    function = signature.prototype(address)
    try:
      result = function(*(slot.payload for slot in slots))
    except ctypes.ArgumentError as e:
      raise SignaturePreparationError(f"argument does not match signature: {e}") from e
    except OSError as e:
      # Windows reports access violations this way; elsewhere a fault kills the process
      raise InvocationFault(f"native call faulted: {e}") from e

    if signature.return_tag is not TypeTag.VOID and result_storage is not None:
      result_storage.value = result


def create_executor(debug: bool = False) -> CtypesExecutor:
  """Factory function returning the ctypes executor"""
  return CtypesExecutor(debug=debug)
