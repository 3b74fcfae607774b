"""Run user-supplied automation snippets against an attached session.

The snippet becomes the body of a function whose only inputs are the
session handles plus a few helpers. Builtins are limited to an allow-list,
so a snippet cannot reach `open`, `__import__` or `eval`. This narrows
what a snippet sees; it is not a security boundary.

    playwriter exec "return page.title()"
    playwriter exec "page.get_by_role('button', name='Sign in').click()"
"""

import builtins
import json
import re
import textwrap
import time
from typing import Any, Callable, Dict

from .common import UsageError, debug_log
from .snapshot import build_snapshot, filter_snapshot


ENTRYPOINT = "__playwriter_exec__"

CAPABILITIES = ("page", "context", "browser", "state", "snapshot", "sleep", "json", "re")

_ALLOWED_BUILTINS = (
    "abs", "all", "any", "bool", "dict", "enumerate", "filter", "float",
    "getattr", "hasattr", "int", "isinstance", "len", "list", "map", "max",
    "min", "print", "range", "repr", "reversed", "round", "set", "sorted",
    "str", "sum", "tuple", "zip",
    "Exception", "KeyError", "TimeoutError", "ValueError",
)

SAFE_BUILTINS: Dict[str, Any] = {
    name: getattr(builtins, name) for name in _ALLOWED_BUILTINS
}


def compile_snippet(code: str) -> Callable:
    """Wrap `code` as the body of a function taking the capability names."""
    source = f"def {ENTRYPOINT}({', '.join(CAPABILITIES)}):\n{textwrap.indent(code, '    ')}\n"
    try:
        compiled = compile(source, "<exec>", "exec")
    except SyntaxError as e:
        raise UsageError(f"Syntax error in exec code (line {e.lineno - 1 if e.lineno else '?'}): {e.msg}")
    namespace: Dict[str, Any] = {"__builtins__": SAFE_BUILTINS}
    exec(compiled, namespace)
    return namespace[ENTRYPOINT]


def format_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, default=str)


def run_snippet(code: str, browser, context, page) -> Any:
    """Execute `code` with the session handles; returns whatever the snippet returns."""
    active = page

    def snapshot(page=None, search=None):
        return filter_snapshot(build_snapshot(page or active), search)

    fn = compile_snippet(code)
    debug_log(f"exec on {page.url}: {code[:200]}", caller="exec")
    return fn(page, context, browser, {}, snapshot, time.sleep, json, re)
