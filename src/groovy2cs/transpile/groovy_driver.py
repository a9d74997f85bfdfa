# src/groovy2cs/transpile/groovy_driver.py
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Union

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from .discovery import Language
from .parse_tree import ConstructKind, ParseNode, ParseToken, SourceSpan
from .parser_registry import DriverInfo, ParserDriver, ParserError

logger = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("groovy.lark")
_DRIVER_VERSION = "1.0.0"

_RULE_KINDS: Dict[str, ConstructKind] = {k.value: k for k in ConstructKind}
_RULE_KINDS["final_statement"] = ConstructKind.EXPRESSION_STATEMENT

_HOLE_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*")


@lru_cache(maxsize=None)
def _grammar_source() -> str:
    return _GRAMMAR_PATH.read_text(encoding="utf-8")


@lru_cache(maxsize=None)
def _parser(start: str) -> Lark:
    """One LALR parser per start rule, built on first use and shared (parsing is reentrant)."""
    logger.debug("building Groovy parser for start rule %r", start)
    return Lark(
        _grammar_source(),
        parser="lalr",
        start=start,
        propagate_positions=True,
        maybe_placeholders=False,
    )


@dataclass(frozen=True)
class _Origin:
    """Where a parsed fragment sits in the normalized source (interpolation holes)."""
    pos: int = 0
    line: int = 1
    col: int = 1


class GroovyLarkDriver(ParserDriver):
    """
    Parses normalized Groovy into ParseNode trees.

    Double-quoted strings containing ``$name`` or ``${expr}`` become GSTRING
    nodes: GSTRING_BEGIN / hole expression / GSTRING_PART ... / GSTRING_END,
    where BEGIN carries the opening quote, each BEGIN/PART token ends with the
    ``$`` marker, and END ends with the closing quote. Hole expressions are
    parsed with the same grammar.
    """

    def info(self) -> DriverInfo:
        return DriverInfo(
            language=Language.GROOVY,
            grammar_name="groovy-subset",
            grammar_sha=hashlib.blake2b(_grammar_source().encode("utf-8"), digest_size=20).hexdigest(),
            version=_DRIVER_VERSION,
        )

    def parse(self, text: str) -> ParseNode:
        tree = self._parse(text, "compilation_unit")
        return self._build(tree, text, _Origin())

    # ---- internals ------------------------------------------------------------

    def _parse(self, text: str, start: str, origin: Optional[_Origin] = None) -> Tree:
        try:
            return _parser(start).parse(text)
        except UnexpectedInput as e:
            line = e.line if isinstance(e.line, int) and e.line > 0 else None
            col = e.column if isinstance(e.column, int) and e.column > 0 else None
            if origin is not None and line is not None:
                line, col = origin.line + line - 1, origin.col + (col or 1) - 1
            context = ""
            if isinstance(getattr(e, "pos_in_stream", None), int) and e.pos_in_stream >= 0:
                context = e.get_context(text).rstrip()
            first = str(e).strip().splitlines()[0] if str(e).strip() else type(e).__name__
            raise ParserError(
                "SYNTAX_ERROR",
                first,
                line_start=line,
                column=col,
                detail=context,
            ) from e

    def _span(self, meta, origin: _Origin) -> SourceSpan:
        # Tree.meta marks itself empty; lark Tokens carry positions directly.
        if not isinstance(meta, Token) and getattr(meta, "empty", True):
            return SourceSpan()
        return SourceSpan(
            start=origin.pos + meta.start_pos,
            end=origin.pos + meta.end_pos,
            line_start=origin.line + meta.line - 1,
            col_start=(origin.col + meta.column - 1) if meta.line == 1 else meta.column,
            line_end=origin.line + meta.end_line - 1,
            col_end=(origin.col + meta.end_column - 1) if meta.end_line == 1 else meta.end_column,
        )

    def _token(self, tok: Token, origin: _Origin) -> ParseToken:
        return ParseToken(type=tok.type, text=str(tok), span=self._span(tok, origin))

    def _build(self, tree: Tree, text: str, origin: _Origin) -> ParseNode:
        name = str(tree.data)
        kind = _RULE_KINDS.get(name)
        if kind is None:
            raise ParserError("UNMAPPED_RULE", f"Grammar rule '{name}' has no construct kind")
        span = self._span(tree.meta, origin)
        src = text[tree.meta.start_pos:tree.meta.end_pos] if not getattr(tree.meta, "empty", True) else ""

        if kind is ConstructKind.STRING_LITERAL:
            tok = tree.children[0]
            if isinstance(tok, Token) and tok.type == "DQ_STRING" and _has_interpolation(str(tok)):
                return self._gstring(tok, span, origin)

        children: List[Union[ParseNode, ParseToken]] = []
        for c in tree.children:
            if isinstance(c, Tree):
                children.append(self._build(c, text, origin))
            else:
                children.append(self._token(c, origin))
        return ParseNode(kind=kind, children=tuple(children), span=span, text=src)

    def _gstring(self, tok: Token, span: SourceSpan, origin: _Origin) -> ParseNode:
        raw = str(tok)
        base = _Origin(
            pos=origin.pos + tok.start_pos,
            line=origin.line + tok.line - 1,
            col=(origin.col + tok.column - 1) if tok.line == 1 else tok.column,
        )
        children: List[Union[ParseNode, ParseToken]] = []
        buf = '"'
        i, end = 1, len(raw) - 1
        while i < end:
            c = raw[i]
            if c == "\\":
                buf += raw[i:i + 2]
                i += 2
                continue
            nxt = raw[i + 1] if i + 1 < end else ""
            if c == "$" and (nxt == "{" or nxt.isalpha() or nxt == "_"):
                children.append(ParseToken(type="GSTRING_PART" if children else "GSTRING_BEGIN",
                                           text=buf + "$", span=span))
                if nxt == "{":
                    close = raw.find("}", i + 2, end)
                    if close < 0:
                        raise ParserError("SYNTAX_ERROR", "Unterminated interpolation in string",
                                          line_start=span.line_start, detail=raw)
                    hole, hole_at, i = raw[i + 2:close], i + 2, close + 1
                else:
                    m = _HOLE_NAME_RE.match(raw, i + 1, end)
                    hole, hole_at = m.group(0), i + 1
                    i = m.end()
                if not hole.strip():
                    raise ParserError("SYNTAX_ERROR", "Empty interpolation in string",
                                      line_start=span.line_start, detail=raw)
                hole_origin = _Origin(pos=base.pos + hole_at, line=base.line, col=base.col + hole_at)
                children.append(self._build(self._parse(hole, "expression", hole_origin), hole, hole_origin))
                buf = ""
                continue
            buf += c
            i += 1
        children.append(ParseToken(type="GSTRING_END", text=buf + '"', span=span))
        return ParseNode(kind=ConstructKind.GSTRING, children=tuple(children), span=span, text=raw)


def _has_interpolation(raw: str) -> bool:
    i = 1
    while i < len(raw) - 1:
        if raw[i] == "\\":
            i += 2
            continue
        if raw[i] == "$" and (raw[i + 1] == "{" or raw[i + 1].isalpha() or raw[i + 1] == "_"):
            return True
        i += 1
    return False
