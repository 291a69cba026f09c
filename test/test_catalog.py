"""
Function catalog tests for crepl
"""

import pytest
from catalog import FunctionCatalog, FunctionCatalogEntry, format_catalog
from utilities import collapse_whitespace, extract_signature_text

SOURCE = """#include <stdio.h>

int add_ret(int a,
            int b) {
    return (a + b);
}

static int helper(int x) { return x; }

void greet(char *name) {
    printf("Hello, %s!\\n", name);
    helper(add_ret(1, 2));
}

double  apply (double (*fn)(double), double x) {
    return fn(x);
}

int add_ret(int a, int b);
"""

EXPORTED = {"add_ret": 0x10, "greet": 0x20, "apply": 0x30}


class TestCatalog:
  """Test source scanning and signature reconstruction"""

  @pytest.fixture
  def catalog(self):
    return FunctionCatalog(SOURCE, EXPORTED.get)

  def test_candidates_in_source_order(self, catalog):
    names = list(catalog.candidates())
    # Keywords followed by '(' are candidates too; resolution filters them
    assert names[:5] == ["add_ret", "return", "helper", "greet", "printf"]

  def test_only_resolved_names_are_listed(self, catalog):
    assert catalog.names() == ["add_ret", "greet"]

  def test_signatures_are_one_line(self, catalog):
    entries = catalog.entries()
    assert entries[0] == FunctionCatalogEntry("add_ret", "int add_ret(int a, int b)")
    assert entries[1] == FunctionCatalogEntry("greet", "void greet(char *name)")

  def test_deduplicated_by_name(self, catalog):
    assert [e.name for e in catalog.entries()].count("add_ret") == 1

  def test_space_before_paren_has_no_signature(self, catalog):
    # "apply (" is a candidate but "apply(" never appears in the text
    assert "apply" in list(catalog.candidates())
    assert "apply" not in catalog.names()

  def test_scan_is_repeatable(self, catalog):
    assert catalog.entries() == catalog.entries()

  def test_completion(self, catalog):
    assert catalog.complete("gr") == ["greet"]
    assert catalog.complete("zz") == []

  def test_empty_source(self):
    assert FunctionCatalog("", EXPORTED.get).entries() == []

  def test_nested_parentheses(self):
    source = "int apply(double (*fn)(double), int n) { return n; }"
    catalog = FunctionCatalog(source, {"apply": 1}.get)
    assert catalog.entries()[0].signature == "int apply(double (*fn)(double), int n)"


class TestListing:
  """Test the :list output"""

  def test_empty_listing(self):
    assert "No callable functions found." in format_catalog([])

  def test_boxed_listing(self):
    text = format_catalog([FunctionCatalogEntry("f", "int f(void)")])
    assert "Available Functions (1)" in text
    assert "  int f(void)" in text.splitlines()


class TestSignatureText:
  """Test the text helpers behind the catalog"""

  def test_collapse_whitespace(self):
    assert collapse_whitespace("  int\n  f( int  a )") == "int f( int a )"

  def test_missing_name(self):
    assert extract_signature_text("int f(void);", "g") is None

  def test_starts_after_boundary(self):
    assert extract_signature_text("x = 1; long g(long v) {}", "g") == "long g(long v)"
