"""
Test configuration for crepl tests
Provides an in-memory module and an executor that never touches machine code
"""

import ctypes
import io
import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import DEFAULT_CONFIG
from ffi import PreparedSignature
from interpreter import Session
from loader import compiler_available
from rendering import ResultRenderer
from values import TypeTag

TESTLIB = Path(__file__).parent / "testlib.c"

FAKE_SOURCE = """
int add_ret(int a, int b) {
    return (a + b);
}

char* echo_ret(char *message) {
    return message;
}

char char_ret(char character) {
    return character;
}

double divide_ret(double a, double b) {
    return a / b;
}

void greet(char *name) {
    printf("Hello, %s!\\n", name);
}

long big_ret(long x) {
    return x * 2;
}

float half_ret(float x) {
    return x / 2;
}

char* null_ret(void) {
    return 0;
}

static int hidden(int x) {
    return x;
}
"""


class FakeModule:
  """ModuleHandle stand-in: addresses map to Python callables"""

  def __init__(self, functions, source=FAKE_SOURCE, locator="fake.c"):
    self.functions = dict(functions)
    self.addresses = {name: 0x1000 + 0x10 * i for i, name in enumerate(self.functions)}
    self.source = source
    self.locator = locator
    self.library_path = "fake.so"
    self.closed = False

  def resolve(self, name):
    if self.closed:
      return None
    return self.addresses.get(name)

  def function_at(self, address):
    for name, addr in self.addresses.items():
      if addr == address:
        return self.functions[name]
    raise KeyError(address)

  def close(self):
    self.closed = True


class FakeMemory:
  """Pointer-addressable byte strings for the renderer"""

  def __init__(self):
    self.blocks = {}
    self.next_address = 0x7000

  def store(self, data: bytes) -> int:
    address = self.next_address
    self.blocks[address] = data + b"\0"
    self.next_address += len(data) + 16
    return address

  def read(self, address, limit):
    data = self.blocks[address][:limit]
    return data.split(b"\0", 1)[0]


class FakeExecutor:
  """Executor that calls Python functions with the slot values"""

  def __init__(self, module, memory=None):
    self.module = module
    self.memory = memory
    self.calls = []

  def prepare_signature(self, arg_tags, return_tag):
    return PreparedSignature(tuple(arg_tags), return_tag)

  def invoke(self, signature, address, slots, result_storage):
    args = [self._argument(slot) for slot in slots]
    self.calls.append((address, signature, args))
    result = self.module.function_at(address)(*args)
    if result_storage is not None:
      if signature.return_tag is TypeTag.POINTER and isinstance(result, bytes):
        result = self.memory.store(result)
      result_storage.value = result

  def _argument(self, slot):
    if slot.tag is TypeTag.POINTER:
      return ctypes.string_at(slot.value)
    return slot.value


def default_functions():
  return {
      "add_ret": lambda a, b: a + b,
      "echo_ret": lambda message: message,
      "char_ret": lambda c: c,
      "divide_ret": lambda a, b: a / b,
      "greet": lambda name: None,
      "big_ret": lambda x: x * 2,
      "half_ret": lambda x: x / 2,
      "null_ret": lambda: None,
  }


@pytest.fixture
def fake_memory():
  return FakeMemory()


@pytest.fixture
def fake_module():
  return FakeModule(default_functions())


@pytest.fixture
def fake_executor(fake_module, fake_memory):
  return FakeExecutor(fake_module, fake_memory)


@pytest.fixture
def output():
  return io.StringIO()


@pytest.fixture
def session(fake_module, fake_executor, fake_memory, output):
  """Session over the fake module; reload yields a fresh fake module"""
  def provider(locator, config):
    module = FakeModule(default_functions(), locator=locator)
    fake_executor.module = module
    return module

  return Session(
      "fake.c",
      fake_module,
      executor=fake_executor,
      provider=provider,
      config=DEFAULT_CONFIG,
      renderer=ResultRenderer(read_memory=fake_memory.read),
      out=output,
  )


@pytest.fixture
def compiler():
  """Name of a usable C compiler, or skip"""
  for candidate in ("cc", "gcc", "clang"):
    if compiler_available(replace(DEFAULT_CONFIG, compiler=candidate)):
      return candidate
  pytest.skip("no C compiler available")
