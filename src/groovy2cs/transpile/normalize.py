# src/groovy2cs/transpile/normalize.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .errors import StructuralError

logger = logging.getLogger(__name__)

# ==============================================================================
# Line model
# ==============================================================================

_TRIPLE_MARKERS = ("'''", '"""')

# Line endings that make a trailing terminator invalid (the statement continues).
_SUPPRESSING_SUFFIXES = (
    "+", "-", "*", "/", "%", "&&", "||", "&", "|", "^", "?", ":", ".",
    "(", "[", ",", "{", "}", ";", "=", "<", ">",
)

# A closing line that still continues an enclosing expression.
_CONTINUATION_SUFFIXES = (",", "+", "-", "*", "/", "%", "&&", "||", "?", ":", ".", "=", "(")

_HEADER_RE = re.compile(r"^(?:\}\s*)?(?:else\s+if|if|for|while|switch|catch)\s*\(")
_BARE_HEADER_RE = re.compile(r"^(?:\}\s*)?(?:else|try|finally)$")
_CONTROL_KEYWORD_RE = re.compile(
    r"^(?:\}\s*)?(?:if|else|for|while|switch|try|catch|finally|do|synchronized|static)\b"
)
_TYPE_KEYWORD_RE = re.compile(r"\b(?:class|interface|enum|trait|new)\b")
_DECLARATION_HEAD_RE = re.compile(
    r"^(?:[\w.<>\[\],]+\s+)+\w+\s*\(.*\)\s*(?:throws\s+[\w.,\s]+)?$"
)
# a declaration whose parameter list stays open at the end of the line
_DECLARATION_OPEN_RE = re.compile(r"^(?:[\w.<>\[\],]+\s+)+\w+\s*\(")
_RELATIONAL_RE = re.compile(r"==|!=|<=|>=|<|>")
_CLOSING = {")": "(", "]": "[", "}": "{"}
_DELIMITER_NAMES = {"(": "parenthesis", "[": "bracket", "{": "brace"}


@dataclass(frozen=True)
class _Line:
    """
    One physical source line after string/comment scanning.

    ``masked`` has the same length as ``text``: string contents are replaced by
    ``_`` (quotes kept) and comment characters by spaces, so structural
    characters can be searched for without false hits.
    """
    number: int                   # 1-based
    text: str                     # without line ending
    ending: str                   # "\n", "\r\n" or ""
    masked: str
    code_end: int                 # index after the last code character (0 = no code)
    starts_in_string: bool
    ends_in_string: bool
    string_close_at: int          # index after a closing triple marker, -1 if none

    @property
    def core(self) -> str:
        return self.masked[: self.code_end].strip()


@dataclass
class _ScanState:
    block_comment: bool = False
    triple: Optional[str] = None
    comment_opened_at: int = 0
    string_opened_at: int = 0


def _split_lines(text: str) -> List[Tuple[str, str]]:
    out: List[Tuple[str, str]] = []
    parts = text.split("\n")
    for i, part in enumerate(parts):
        if i == len(parts) - 1:
            if part:
                out.append((part, ""))
            break
        if part.endswith("\r"):
            out.append((part[:-1], "\r\n"))
        else:
            out.append((part, "\n"))
    return out


def _find_triple_close(text: str, start: int, marker: str) -> int:
    i = start
    n = len(text)
    while i < n:
        if text[i] == "\\":
            i += 2
            continue
        if text.startswith(marker, i):
            return i
        i += 1
    return -1


def _scan_line(number: int, text: str, ending: str, st: _ScanState) -> _Line:
    masked = list(text)
    n = len(text)
    code_end = 0
    starts_in_string = st.triple is not None
    string_close_at = -1
    i = 0
    while i < n:
        if st.block_comment:
            j = text.find("*/", i)
            stop = n if j < 0 else j + 2
            for k in range(i, stop):
                masked[k] = " "
            i = stop
            if j >= 0:
                st.block_comment = False
            continue
        if st.triple is not None:
            j = _find_triple_close(text, i, st.triple)
            stop = n if j < 0 else j
            for k in range(i, stop):
                masked[k] = "_"
            code_end = stop
            if j < 0:
                i = n
                continue
            i = j + 3
            code_end = i
            string_close_at = i
            st.triple = None
            continue
        if text.startswith("//", i):
            for k in range(i, n):
                masked[k] = " "
            break
        if text.startswith("/*", i):
            masked[i] = masked[i + 1] = " "
            st.block_comment = True
            st.comment_opened_at = number
            i += 2
            continue
        marker = next((m for m in _TRIPLE_MARKERS if text.startswith(m, i)), None)
        if marker is not None:
            st.triple = marker
            st.string_opened_at = number
            i += 3
            code_end = i
            continue
        c = text[i]
        if c in ("'", '"'):
            j = i + 1
            while j < n:
                if text[j] == "\\":
                    j += 2
                    continue
                if text[j] == c:
                    break
                j += 1
            if j >= n:
                raise StructuralError("string", number, f"Unterminated string at line {number}")
            for k in range(i + 1, j):
                masked[k] = "_"
            i = j + 1
            code_end = i
            continue
        if not c.isspace():
            code_end = i + 1
        i += 1
    return _Line(
        number=number,
        text=text,
        ending=ending,
        masked="".join(masked),
        code_end=code_end,
        starts_in_string=starts_in_string,
        ends_in_string=st.triple is not None,
        string_close_at=string_close_at,
    )


def scan_lines(text: str) -> Tuple[List[_Line], _ScanState]:
    st = _ScanState()
    lines = [
        _scan_line(i + 1, body, ending, st)
        for i, (body, ending) in enumerate(_split_lines(text))
    ]
    return lines, st


# ==============================================================================
# Rules
# ==============================================================================


class LineRule(str, Enum):
    """Per-line decisions in priority order; the first rule that resolves wins."""
    BLANK = "blank"
    MULTILINE_STRING_BODY = "multiline_string_body"
    COMMENT_ONLY = "comment_only"
    PAREN_CONTINUATION = "paren_continuation"
    CONTROL_HEADER = "control_header"
    MULTILINE_STRING_END = "multiline_string_end"
    MULTILINE_STRING_START = "multiline_string_start"
    CHAIN_CONTINUATION = "chain_continuation"
    CHAIN_EXIT = "chain_exit"
    CHAIN_ENTRY = "chain_entry"
    CLOSURE_ENTRY = "closure_entry"
    UNBALANCED_LINE = "unbalanced_line"
    ENUMERABLE_ENTRY = "enumerable_entry"
    INVALID_TERMINATOR = "invalid_terminator"
    ENUMERABLE_CONTINUATION = "enumerable_continuation"
    DEFAULT_INSERT = "default_insert"


@dataclass(frozen=True)
class _LineContext:
    line: _Line
    next_core: str                # core of the next line carrying code ("" at end)
    before: Optional[str]         # innermost open delimiter before the line
    after: Optional[str]          # innermost open delimiter after the line
    parens_before: int
    braces_after: int


def _terminate(text: str, code_end: int) -> str:
    """Insert ';' right after the last code character, keeping comments and spacing."""
    if code_end <= 0 or text[code_end - 1] == ";":
        return text
    return text[:code_end] + ";" + text[code_end:]


def _ends_with_any(core: str, suffixes: Tuple[str, ...]) -> bool:
    return any(core.endswith(s) for s in suffixes)


def _opens_bare_closure(core: str) -> bool:
    """True for `list.each {`, `def f = {`, `times(3) {`; False for block headers and declarations."""
    if not core.endswith("{"):
        return False
    head = core[:-1].rstrip()
    if not head or _CONTROL_KEYWORD_RE.match(head) or _TYPE_KEYWORD_RE.search(head):
        return False
    if _DECLARATION_HEAD_RE.match(head):
        return False
    return head[-1] in ")=(," or head[-1].isalnum() or head[-1] == "_"


class Normalizer:
    """
    Rewrites Groovy source so that every logical statement ends with an explicit ';'.

    One forward pass with one line of lookahead. Nesting state (parenthesis,
    bracket, brace and closure stacks plus skip markers) is owned by a single
    ``normalize`` call and reset at its start, so an instance may be reused
    sequentially but must not be shared between threads.
    """

    def __init__(self) -> None:
        self._rules: Tuple[Tuple[LineRule, Callable[[_LineContext], Optional[str]]], ...] = (
            (LineRule.BLANK, self._rule_blank),
            (LineRule.MULTILINE_STRING_BODY, self._rule_string_body),
            (LineRule.COMMENT_ONLY, self._rule_comment_only),
            (LineRule.PAREN_CONTINUATION, self._rule_paren_continuation),
            (LineRule.CONTROL_HEADER, self._rule_control_header),
            (LineRule.MULTILINE_STRING_END, self._rule_string_end),
            (LineRule.MULTILINE_STRING_START, self._rule_string_start),
            (LineRule.CHAIN_CONTINUATION, self._rule_chain_continuation),
            (LineRule.CHAIN_EXIT, self._rule_chain_exit),
            (LineRule.CHAIN_ENTRY, self._rule_chain_entry),
            (LineRule.CLOSURE_ENTRY, self._rule_closure_entry),
            (LineRule.UNBALANCED_LINE, self._rule_unbalanced),
            (LineRule.ENUMERABLE_ENTRY, self._rule_enumerable_entry),
            (LineRule.INVALID_TERMINATOR, self._rule_invalid_terminator),
            (LineRule.ENUMERABLE_CONTINUATION, self._rule_enumerable_continuation),
            (LineRule.DEFAULT_INSERT, self._rule_default),
        )
        self._reset()

    def _reset(self) -> None:
        # Each stack holds the 1-based line number of its opener.
        self._parens: List[int] = []
        self._brackets: List[int] = []
        self._braces: List[int] = []
        # (opening line, brace depth the closure body lives at)
        self._closures: List[Tuple[int, int]] = []
        # brace depths of nested blocks opened inside a closure
        self._skips: List[int] = []
        self._nesting: List[str] = []
        self._in_chain = False
        # paren depth of a header or parameter list left open on an earlier line,
        # and whether it belongs to a control statement or a declaration
        self._header_depth = 0
        self._header_is_control = False

    # ---- public API -----------------------------------------------------------

    def normalize(self, text: str) -> str:
        """
        Return ``text`` with exactly one ';' after every logical statement.

        Raises StructuralError when a block comment, multiline string,
        parenthesis, bracket, brace or closure is still open at end of input.
        """
        self._reset()
        lines, st = scan_lines(text)
        code_lines = [i for i, ln in enumerate(lines) if ln.code_end > 0 and not (ln.starts_in_string and ln.ends_in_string)]
        out: List[str] = []
        cursor = 0
        for idx, line in enumerate(lines):
            while cursor < len(code_lines) and code_lines[cursor] <= idx:
                cursor += 1
            next_core = lines[code_lines[cursor]].core if cursor < len(code_lines) else ""

            before = self._innermost()
            parens_before = len(self._parens)
            if not (line.starts_in_string and line.ends_in_string):
                self._absorb(line)
            ctx = _LineContext(
                line=line,
                next_core=next_core,
                before=before,
                after=self._innermost(),
                parens_before=parens_before,
                braces_after=len(self._braces),
            )
            rule, rendered = self._decide(ctx)
            logger.debug("line %d: %s", line.number, rule.value)
            self._settle()
            out.append(rendered + line.ending)

        self._check_balanced(st)
        return "".join(out)

    # ---- state ----------------------------------------------------------------

    def _innermost(self) -> Optional[str]:
        return self._nesting[-1] if self._nesting else None

    def _stack_for(self, opener: str) -> List[int]:
        if opener == "(":
            return self._parens
        if opener == "[":
            return self._brackets
        return self._braces

    def _absorb(self, line: _Line) -> None:
        for ch in line.masked:
            if ch in "([{":
                self._nesting.append(ch)
                self._stack_for(ch).append(line.number)
            elif ch in _CLOSING:
                opener = _CLOSING[ch]
                if not self._nesting or self._nesting[-1] != opener:
                    raise StructuralError(
                        _DELIMITER_NAMES[opener],
                        line.number,
                        f"Unmatched '{ch}' at line {line.number}",
                    )
                self._nesting.pop()
                self._stack_for(opener).pop()

    def _settle(self) -> None:
        depth = len(self._braces)
        while self._closures and self._closures[-1][1] > depth:
            self._closures.pop()
        while self._skips and self._skips[-1] > depth:
            self._skips.pop()
        if self._header_depth > len(self._parens):
            self._header_depth = 0

    def _check_balanced(self, st: _ScanState) -> None:
        if st.block_comment:
            raise StructuralError("block comment", st.comment_opened_at)
        if st.triple is not None:
            raise StructuralError("multiline string", st.string_opened_at)
        if self._parens:
            raise StructuralError("parenthesis", self._parens[-1])
        if self._brackets:
            raise StructuralError("bracket", self._brackets[-1])
        if self._closures:
            raise StructuralError("closure", self._closures[-1][0])
        if self._braces:
            raise StructuralError("brace", self._braces[-1])

    def _decide(self, ctx: _LineContext) -> Tuple[LineRule, str]:
        for rule, handler in self._rules:
            rendered = handler(ctx)
            if rendered is not None:
                return rule, rendered
        raise AssertionError("default rule must always resolve")

    # ---- rules ----------------------------------------------------------------

    def _rule_blank(self, ctx: _LineContext) -> Optional[str]:
        return ctx.line.text if not ctx.line.text.strip() else None

    def _rule_string_body(self, ctx: _LineContext) -> Optional[str]:
        line = ctx.line
        return line.text if (line.starts_in_string and line.ends_in_string) else None

    def _rule_comment_only(self, ctx: _LineContext) -> Optional[str]:
        return ctx.line.text if ctx.line.code_end == 0 else None

    def _rule_paren_continuation(self, ctx: _LineContext) -> Optional[str]:
        return ctx.line.text if (ctx.before == "(" and ctx.after == "(") else None

    def _rule_control_header(self, ctx: _LineContext) -> Optional[str]:
        core = ctx.line.core
        if self._header_depth and len(self._parens) < self._header_depth:
            # header or parameter list opened on an earlier line closes here;
            # a trailing '{' opens its block, never a closure
            self._header_depth = 0
            if core.endswith("{"):
                return ctx.line.text
            return ctx.line.text if (self._header_is_control and core.endswith(")")) else None
        if _BARE_HEADER_RE.match(core):
            return ctx.line.text
        m = _HEADER_RE.match(core)
        if not m:
            if (
                not self._header_depth
                and len(self._parens) > ctx.parens_before
                and _DECLARATION_OPEN_RE.match(core)
            ):
                self._header_depth = ctx.parens_before + 1
                self._header_is_control = False
            return None
        depth = 0
        for i in range(m.end() - 1, len(core)):
            ch = core[i]
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return ctx.line.text if i == len(core) - 1 else None
        # condition continues on the next line
        self._header_depth = ctx.parens_before + 1
        self._header_is_control = True
        return ctx.line.text

    def _rule_string_end(self, ctx: _LineContext) -> Optional[str]:
        line = ctx.line
        if not (line.starts_in_string and not line.ends_in_string):
            return None
        if line.masked[line.string_close_at:].strip():
            return None
        if _starts_chain(ctx.next_core):
            self._in_chain = True
            return line.text
        if ctx.after in ("(", "["):
            return line.text
        return _terminate(line.text, line.code_end)

    def _rule_string_start(self, ctx: _LineContext) -> Optional[str]:
        return ctx.line.text if ctx.line.ends_in_string else None

    def _rule_chain_continuation(self, ctx: _LineContext) -> Optional[str]:
        if self._in_chain and _starts_chain(ctx.next_core):
            return ctx.line.text
        return None

    def _rule_chain_exit(self, ctx: _LineContext) -> Optional[str]:
        if not self._in_chain:
            return None
        self._in_chain = False
        core = ctx.line.core
        if core.endswith("->") or _ends_with_any(core, _SUPPRESSING_SUFFIXES):
            return None
        return _terminate(ctx.line.text, ctx.line.code_end)

    def _rule_chain_entry(self, ctx: _LineContext) -> Optional[str]:
        if not _starts_chain(ctx.next_core):
            return None
        self._in_chain = True
        return ctx.line.text

    def _rule_closure_entry(self, ctx: _LineContext) -> Optional[str]:
        core = ctx.line.core
        if not (core.endswith("->") or _opens_bare_closure(core)):
            return None
        self._closures.append((ctx.line.number, ctx.braces_after))
        return ctx.line.text

    def _rule_unbalanced(self, ctx: _LineContext) -> Optional[str]:
        return ctx.line.text if ctx.after == "(" else None

    def _rule_enumerable_entry(self, ctx: _LineContext) -> Optional[str]:
        return ctx.line.text if ctx.line.core.endswith("[") else None

    def _closes_closure(self, ctx: _LineContext) -> bool:
        return bool(self._closures) and ctx.braces_after < self._closures[-1][1]

    def _rule_invalid_terminator(self, ctx: _LineContext) -> Optional[str]:
        line = ctx.line
        core = line.core
        closes_closure = self._closes_closure(ctx)
        if not (_ends_with_any(core, _SUPPRESSING_SUFFIXES) or core.startswith("@") or closes_closure):
            return None

        if core.endswith("{") and self._closures and not core.startswith("}"):
            self._skips.append(ctx.braces_after)

        if closes_closure:
            self._closures.pop()
            trimmed = core.rstrip(";")
            if ctx.after in ("(", "[") or _ends_with_any(trimmed, _CONTINUATION_SUFFIXES):
                return line.text
            return _terminate(line.text, line.code_end)

        if self._skips and ctx.braces_after < self._skips[-1]:
            self._skips.pop()
            return line.text

        stripped = core.rstrip(" \t;)")
        if stripped.endswith("}") and "->" in core:
            return _terminate(line.text, line.code_end)

        if stripped.endswith("}") and "{" in stripped:
            return self._terminate_inline_block(line)

        if core.startswith("import "):
            return _terminate(line.text, line.code_end)

        if core.endswith("--") or core.endswith("++"):
            return _terminate(line.text, line.code_end)

        return line.text

    def _terminate_inline_block(self, line: _Line) -> str:
        """`x { stmt }` gets a ';' after the block's last statement and after the line."""
        masked = line.masked[: line.code_end]
        first = masked.find("{")
        last = masked.rfind("}")
        content = masked[first + 1:last]
        if not content.strip():
            return line.text
        p = last - 1
        while p > first and masked[p].isspace():
            p -= 1
        text = line.text
        code_end = line.code_end
        if masked[p] != ";" and not _RELATIONAL_RE.search(content):
            text = text[: p + 1] + ";" + text[p + 1:]
            code_end += 1
        return _terminate(text, code_end)

    def _rule_enumerable_continuation(self, ctx: _LineContext) -> Optional[str]:
        return ctx.line.text if ctx.after == "[" else None

    def _rule_default(self, ctx: _LineContext) -> Optional[str]:
        return _terminate(ctx.line.text, ctx.line.code_end)


def _starts_chain(core: str) -> bool:
    return core.startswith(".") or core.startswith("?.")


def normalize(text: str) -> str:
    """Convenience wrapper: normalize ``text`` with a fresh Normalizer."""
    return Normalizer().normalize(text)
