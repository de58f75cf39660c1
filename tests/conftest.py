"""Shared fixtures: a small on-disk front-end project and tool executor."""

import json

import pytest

from sandbox.executor import ToolContext, ToolExecutor

MAIN_TS = (
    "import { URL } from 'whatwg-url';\n"
    "import { bootstrapApplication } from '@angular/platform-browser';\n"
    "\n"
    "const api = new URL('https://example.com/api');\n"
    "bootstrapApplication(AppComponent);\n"
)

UTIL_JS = (
    "const { URLSearchParams } = require('whatwg-url');\n"
    "module.exports = { parse: (q) => new URLSearchParams(q) };\n"
)


@pytest.fixture
def project(tmp_path):
    manifest = {
        "name": "demo-app",
        "dependencies": {"@angular/core": "^18.2.0", "whatwg-url": "^14.0.0"},
        "devDependencies": {"typescript": "~5.4.0"},
    }
    (tmp_path / "package.json").write_text(json.dumps(manifest, indent=2) + "\n")

    src = tmp_path / "src"
    src.mkdir()
    (src / "main.ts").write_text(MAIN_TS)
    (src / "util.js").write_text(UTIL_JS)
    (src / "app.component.ts").write_text("export class AppComponent {}\n")

    installed = tmp_path / "node_modules" / "whatwg-url"
    installed.mkdir(parents=True)
    (installed / "package.json").write_text(
        json.dumps({"name": "whatwg-url", "main": "index.js", "engines": {"node": ">=18"}})
    )
    (installed / "index.js").write_text("module.exports = require('whatwg-url/URL');\n")
    return tmp_path


@pytest.fixture
def executor(project):
    return ToolExecutor(ToolContext(project_root=project))
