"""
Value tagging and arena tests for crepl
"""

import ctypes

import pytest
from values import Arena, CallRequest, TypeTag


class TestTypeTags:
  """Test the closed tag set"""

  def test_tag_set_is_closed(self):
    assert {tag.name for tag in TypeTag} == {
        "VOID", "SINT32", "SINT64", "FLOAT32", "FLOAT64", "SCHAR", "POINTER"
    }

  def test_sizes(self):
    assert TypeTag.VOID.size == 0
    assert TypeTag.SINT32.size == 4
    assert TypeTag.SINT64.size == 8
    assert TypeTag.FLOAT32.size == 4
    assert TypeTag.FLOAT64.size == 8
    assert TypeTag.SCHAR.size == 1
    assert TypeTag.POINTER.size == ctypes.sizeof(ctypes.c_void_p)

  def test_request_description(self):
    request = CallRequest("add_ret", [], TypeTag.SINT32)
    assert str(request) == "int add_ret(void)"


class TestArena:
  """Test per-line allocation and release"""

  @pytest.fixture
  def arena(self):
    return Arena()

  def test_alloc_keeps_value(self, arena):
    block = arena.alloc(TypeTag.SINT64, 7)
    assert block.value == 7
    assert len(arena) == 1

  def test_alloc_void_is_rejected(self, arena):
    with pytest.raises(ValueError):
      arena.alloc(TypeTag.VOID)

  def test_strdup_is_null_terminated(self, arena):
    pointer = arena.strdup("héllo")
    assert ctypes.string_at(pointer.value) == "héllo".encode("utf-8")

  def test_reset_releases_everything(self, arena):
    arena.alloc(TypeTag.SINT32, 1)
    arena.strdup("x")
    arena.reset()
    assert len(arena) == 0
    assert arena.resets == 1

  def test_double_reset_is_a_no_op(self, arena):
    arena.alloc(TypeTag.SINT32, 1)
    arena.reset()
    arena.reset()
    assert len(arena) == 0
    assert arena.resets == 1

  def test_reset_on_fresh_arena(self, arena):
    arena.reset()
    arena.reset()
    assert arena.resets == 0

  def test_scope_releases_on_error(self, arena):
    with pytest.raises(RuntimeError):
      with arena.scope():
        arena.alloc(TypeTag.SINT32, 1)
        raise RuntimeError("boom")
    assert len(arena) == 0

  def test_scope_starts_empty(self, arena):
    arena.alloc(TypeTag.SINT32, 1)
    with arena.scope() as scoped:
      assert len(scoped) == 0

  def test_statistics(self, arena):
    arena.alloc(TypeTag.SINT32, 1)
    arena.alloc(TypeTag.SINT32, 2)
    arena.reset()
    arena.alloc(TypeTag.SINT32, 3)
    assert arena.high_water == 2
    assert arena.total_allocations == 3
    assert "high_water=2" in arena.stats()

  def test_bytes_in_use(self, arena):
    arena.alloc(TypeTag.SINT64, 1)
    arena.alloc(TypeTag.SCHAR, 2)
    assert arena.bytes_in_use == 9
    assert "bytes=9" in arena.stats()
    arena.reset()
    assert arena.bytes_in_use == 0
