"""Tests for locating a package's import statements in source text."""

from diagnosis.import_remover import find_package_imports


def _without_imports(source, package):
    for statement in find_package_imports(source, package):
        source = source.replace(statement, "", 1)
    return source


def test_finds_named_default_namespace_and_side_effect_imports():
    source = (
        "import { URL, URLSearchParams } from 'whatwg-url';\n"
        "import whatwg from \"whatwg-url\";\n"
        "import * as w from 'whatwg-url';\n"
        "import 'whatwg-url';\n"
        "import { Component } from '@angular/core';\n"
    )
    assert len(find_package_imports(source, "whatwg-url")) == 4
    assert _without_imports(source, "whatwg-url") == "import { Component } from '@angular/core';\n"


def test_finds_require_forms_and_subpaths():
    source = (
        "const { URL } = require('whatwg-url');\n"
        "var legacy = require('whatwg-url/lib/URL');\n"
        "require('whatwg-url');\n"
        "const keep = require('rxjs');\n"
    )
    assert _without_imports(source, "whatwg-url") == "const keep = require('rxjs');\n"


def test_does_not_touch_similarly_named_packages():
    source = "import { URL } from 'whatwg-url-polyfill';\nimport fetch from 'whatwg-fetch';\n"
    assert find_package_imports(source, "whatwg-url") == []


def test_statement_inside_other_code_is_left_alone():
    source = "const u = cond ? require('whatwg-url') : null;\n"
    assert find_package_imports(source, "whatwg-url") == []


def test_package_names_are_matched_literally():
    source = "import x from 'node.fetch';\nimport y from 'nodeXfetch';\n"
    assert find_package_imports(source, "node.fetch") == ["import x from 'node.fetch';\n"]


def test_returns_statement_texts_in_pattern_order_without_duplicates():
    source = (
        "import { URL } from 'whatwg-url';\n"
        "const { URLSearchParams } = require('whatwg-url');\n"
        "import { URL } from 'whatwg-url';\n"
        "const a = 1;\n"
    )
    assert find_package_imports(source, "whatwg-url") == [
        "import { URL } from 'whatwg-url';\n",
        "const { URLSearchParams } = require('whatwg-url');\n",
    ]


def test_last_line_without_newline():
    assert find_package_imports("import 'whatwg-url'", "whatwg-url") == ["import 'whatwg-url'"]


def test_clean_source_yields_nothing():
    source = "import path from 'path';\n\n\nconst u = new URL('x');\n"
    assert find_package_imports(source, "whatwg-url") == []
