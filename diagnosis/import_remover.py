"""
Locate import/require statements that reference one package.

Only whole statements on their own line are matched, so removing the
returned texts leaves surrounding code intact.
"""

import re

_QUOTE = r"""['"]"""
_EOL = r";?[ \t]*(?:\r?\n|$)"


def _statement_patterns(package: str) -> list[re.Pattern]:
    # optional subpath: 'pkg' and 'pkg/sub' both refer to the package
    target = _QUOTE + re.escape(package) + r"(?:/[^'\"]*)?" + _QUOTE
    return [
        # import { A, B } from 'pkg'
        re.compile(r"^[ \t]*import\s+(?:type\s+)?\{[^}]*\}\s+from\s+" + target + _EOL, re.MULTILINE),
        # import A from 'pkg' / import * as A from 'pkg' / import A, { B } from 'pkg'
        re.compile(
            r"^[ \t]*import\s+(?:\w+|\*\s+as\s+\w+)(?:\s*,\s*\{[^}]*\})?\s+from\s+" + target + _EOL,
            re.MULTILINE,
        ),
        # import 'pkg'
        re.compile(r"^[ \t]*import\s+" + target + _EOL, re.MULTILINE),
        # const { A } = require('pkg') / const A = require('pkg')
        re.compile(
            r"^[ \t]*(?:const|let|var)\s+(?:\w+|\{[^}]*\})\s*=\s*require\(\s*" + target + r"\s*\)" + _EOL,
            re.MULTILINE,
        ),
        # require('pkg')
        re.compile(r"^[ \t]*require\(\s*" + target + r"\s*\)" + _EOL, re.MULTILINE),
    ]


def find_package_imports(content: str, package: str) -> list[str]:
    """The exact statement texts (with line ending) that would be removed."""
    found = []
    for pattern in _statement_patterns(package):
        found.extend(m.group(0) for m in pattern.finditer(content))
    return list(dict.fromkeys(found))
