"""
Source preprocessing before the lark parse.

Strips comments (keeping line/column positions intact) and performs Go's
automatic semicolon insertion: a ``;`` is appended to every line whose last
token is an identifier, a literal, ``)``, ``]``, ``}``, ``++`` or ``--``.
"""

from typing import List

_CLOSERS = frozenset(')]}"\'`')


def strip_comments(source: str) -> str:
    """
    Replace comments with spaces, preserving newlines.

    String, rune and raw-string literals are left untouched so ``"//"``
    inside a literal is not treated as a comment.
    """
    out: List[str] = []
    i, n = 0, len(source)
    while i < n:
        ch = source[i]
        if ch == '/' and i + 1 < n and source[i + 1] == '/':
            while i < n and source[i] != '\n':
                out.append(' ')
                i += 1
        elif ch == '/' and i + 1 < n and source[i + 1] == '*':
            end = source.find('*/', i + 2)
            end = n if end < 0 else end + 2
            out.extend('\n' if c == '\n' else ' ' for c in source[i:end])
            i = end
        elif ch in ('"', "'"):
            j = i + 1
            while j < n and source[j] != ch and source[j] != '\n':
                j += 2 if source[j] == '\\' else 1
            out.append(source[i:j + 1])
            i = j + 1
        elif ch == '`':
            end = source.find('`', i + 1)
            end = n if end < 0 else end + 1
            out.append(source[i:end])
            i = end
        else:
            out.append(ch)
            i += 1
    return ''.join(out)


def _needs_semicolon(line: str) -> bool:
    code = line.rstrip()
    if not code:
        return False
    if code.endswith('++') or code.endswith('--'):
        return True
    last = code[-1]
    return last.isalnum() or last == '_' or last in _CLOSERS


def insert_semicolons(source: str) -> str:
    """Append ``;`` to lines that end a statement, per Go's lexical rule."""
    lines = source.split('\n')
    in_raw = False
    for idx, line in enumerate(lines):
        # Lines inside a multi-line raw string are never terminated
        if line.count('`') % 2 == 1:
            in_raw = not in_raw
            if in_raw:
                continue
        elif in_raw:
            continue
        if _needs_semicolon(line):
            lines[idx] = line.rstrip() + ';'
    return '\n'.join(lines)


def preprocess(source: str) -> str:
    return insert_semicolons(strip_comments(source))
