#!/usr/bin/env python3
"""
Line oriented tokenizer for C and C++ headers.

The tokenizer does not build a syntax tree. Each statement is recognized by
the first rule whose pattern matches its first line, and bodies (function
bodies, struct/union/enum bodies) are skipped by counting braces. Every input
line ends up inside exactly one token's [begin, end) range.
"""

import logging
import re
from collections.abc import Iterator, Sequence

from apiport.errors import MalformedSource
from apiport.models import Token, TokenKind

logger = logging.getLogger(__name__)

IGNORED_PREFIXES = (
    "SDL_COMPILE_TIME_ASSERT(",
    "static_assert(",
    "void *alloca",
)

# Attribute and calling convention macros dropped from signatures
ATTRIBUTES = re.compile(
    r"\b(?:"
    + "|".join(
        [
            "extern",
            "SDL_FORCE_INLINE",
            "SDL_DECLSPEC",
            "SDL_MALLOC",
            r"SDL_ALLOC_SIZE2",
            "SDL_ALLOC_SIZE",
            "SDLCALL",
            r"SDL_(?:OUT|IN|INOUT)_(?:Z_)?(?:BYTE)?CAP",
            r"SDL_PRINTF_VARARG_FUNCV?",
            r"SDL_SCANF_VARARG_FUNCV?",
            r"SDL_WPRINTF_VARARG_FUNCV?",
        ]
    )
    + r")\b(?:\([^)]*\))?\s*"
)

MEMBER_SPECIFIERS = {"inline", "static", "constexpr", "explicit", "virtual"}

FORWARD_MARKER = re.compile(r"^//\s*Forward decl")
PRAGMA_IMPL = re.compile(r"^#\s*pragma\s+region\s+impl")
DEFINE = re.compile(r"^#\s*define\s+(\w+)(\(([^)]*)\))?(.*)$")
EXTERN_C = re.compile(r'^extern\s+"C(?:\+\+)?"\s*\{?')
ACCESS = re.compile(r"^(?:public|private|protected)\s*:")
NAMESPACE = re.compile(r"^namespace\s*([^{]*)\{")
TEMPLATE = re.compile(r"^template\s*<")
CALLBACK = re.compile(r"^typedef\s+([\w\s*]+?)\s*\(\s*(?:\w+\s+)?\*\s*(\w+)\s*\)\s*\((.*)$")
TYPEDEF_ALIAS = re.compile(r"^typedef\s+([\w\s*]+?)\s*\b(\w+)\s*(\[[^\]]*\])?\s*;")
USING_ALIAS = re.compile(r"^using\s+(\w+)\s*=\s*([^;]*)(;?)")
USING_DECL = re.compile(r"^using\s+([\w:]+)\s*;")
FORWARD = re.compile(r"^(?:struct|class)\s+([\w<>:]+)\s*;")
RECORD = re.compile(
    r"^(typedef\s+)?(struct|class|union|enum)(?:\s+(?:class|struct))?\b\s*"
    r"([\w:<>]*)\s*(?::\s*([^{;]+?))?\s*(\{.*)?$"
)
MEMBER = re.compile(
    r"^((?:[\w*&:<>,\[\]]+\s+)*)"
    r"(operator\s*(?:\(\)|\[\]|<=>|->|[-+*/<>=!%&|^~]{1,3})|[\w*&~:<>]+)"
    r"(\s*\()?"
)
ENUMERATOR = re.compile(r"^(\w+)\s*(?:=\s*([^,/]*?))?\s*,?\s*(?:/\*\*<(.*?)\*/|///<(.*))?$")
INLINE_DOC = re.compile(r"/\*\*<(.*?)\*/|///<(.*)$")
POINTER_NAME = re.compile(r"^((?:[*&]\s*)+)(\w+)\s*$")
STAR_PREFIX = re.compile(r"^\s*\*(?!/)\s?")

# Kinds whose size is not checked
UNCHECKED_KINDS = {
    TokenKind.DOC,
    TokenKind.COMMENT,
    TokenKind.OTHER,
    TokenKind.DIRECTIVE,
    TokenKind.STRUCT,
    TokenKind.NAMESPACE,
    TokenKind.EOF,
}


def strip_code(line: str, in_comment: bool = False) -> tuple[str, bool]:
    """Remove comments and string/char literals from a line.

    Returns the remaining code and whether a block comment is still open.
    """
    out = []
    i = 0
    n = len(line)
    while i < n:
        if in_comment:
            end = line.find("*/", i)
            if end < 0:
                return "".join(out), True
            i = end + 2
            in_comment = False
            continue
        if line.startswith("//", i):
            break
        if line.startswith("/*", i):
            in_comment = True
            i += 2
            continue
        c = line[i]
        if c in "\"'":
            j = i + 1
            while j < n and line[j] != c:
                j += 2 if line[j] == "\\" else 1
            i = j + 1
            continue
        out.append(c)
        i += 1
    return "".join(out), in_comment


def find_closing(text: str, depth: int, opening: str = "(", closing: str = ")") -> tuple[int, int]:
    """Scan text for the bracket that brings depth to zero.

    Returns the index of that bracket (or -1) and the depth reached.
    """
    quote = ""
    i = 0
    while i < len(text):
        c = text[i]
        if quote:
            if c == "\\":
                i += 1
            elif c == quote:
                quote = ""
        elif c in "\"'":
            quote = c
        elif c == opening:
            depth += 1
        elif c == closing:
            depth -= 1
            if depth == 0:
                return i, depth
        i += 1
    return -1, depth


def check_token_too_large(token: Token) -> bool:
    delta = token.end - token.begin
    if token.kind in UNCHECKED_KINDS:
        return False
    if token.kind == TokenKind.ENUM:
        return delta > 200
    if token.kind == TokenKind.UNION:
        return delta > 100
    if token.kind in (TokenKind.FUNCTION, TokenKind.CALLBACK, TokenKind.DEF):
        return delta > 30
    return delta > 10


def _inline_doc(text: str) -> str | None:
    m = INLINE_DOC.search(text)
    if not m:
        return None
    return (m.group(1) if m.group(1) is not None else m.group(2)).strip()


def _normalize_operator_name(name: str) -> str:
    return re.sub(r"(\w+)([*&])", r"\1 \2", name)


class Tokenizer:
    """Splits header lines into tokens.

    Lines are newline free. `first_line` is the 1-based number of the first
    line, used when re-tokenizing a nested body. In `enumerators` mode,
    statement lines are read as enum constants.
    """

    def __init__(
        self,
        lines: Sequence[str],
        *,
        first_line: int = 1,
        enumerators: bool = False,
        ignored_prefixes: Sequence[str] = IGNORED_PREFIXES,
    ):
        self.lines = list(lines)
        self.first_line = first_line
        self.enumerators = enumerators
        self.ignored_prefixes = tuple(ignored_prefixes)
        self.pos = 0
        self._scopes: list[str] = []

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next()
            yield token
            if token.kind == TokenKind.EOF:
                return

    def tokenize(self) -> list[Token]:
        return list(self)

    # Line helpers

    def _line_number(self, index: int) -> int:
        return self.first_line + index

    def _last_line_number(self) -> int:
        return self.first_line + max(len(self.lines) - 1, 0)

    def _skip_blank(self) -> None:
        while self.pos < len(self.lines) and not self.lines[self.pos].strip():
            self.pos += 1

    def _next_nonblank(self, index: int) -> int | None:
        while index < len(self.lines):
            if self.lines[index].strip():
                return index
            index += 1
        return None

    def _take_line(self) -> str | None:
        if self.pos >= len(self.lines):
            return None
        line = self.lines[self.pos]
        self.pos += 1
        return line

    def next(self) -> Token:
        """Read the next token, or the eof token at the end."""
        start = self.pos
        self._skip_blank()
        if self.pos >= len(self.lines):
            end = self._line_number(len(self.lines))
            if start < self.pos:
                return Token(kind=TokenKind.OTHER, begin=self._line_number(start), end=end)
            if self._scopes:
                raise MalformedSource(f"unclosed {self._scopes[-1]} block", self._last_line_number())
            return Token(kind=TokenKind.EOF, begin=end, end=end)

        raw = self.lines[self.pos]
        self.pos += 1
        line = raw.strip()
        spaces = len(raw) - len(raw.lstrip())

        fields = self._read(line)

        self._skip_blank()
        token = Token(
            begin=self._line_number(start),
            end=self._line_number(self.pos),
            spaces=spaces,
            **fields,
        )
        if check_token_too_large(token):
            logger.warning(
                f"Token at {token.begin} seems very large {token.value} "
                f"({token.end - token.begin} lines)"
            )
        return token

    # Dispatch

    def _read(self, line: str) -> dict:
        if FORWARD_MARKER.match(line):
            return {"kind": TokenKind.DOC}
        if PRAGMA_IMPL.match(line):
            self.pos = len(self.lines)
            self._scopes.clear()
            return {"kind": TokenKind.OTHER}
        if line.startswith("//"):
            return self._read_line_comments(line)
        if line.startswith("/*"):
            return self._read_block_comment(line)
        if line.startswith("#"):
            return self._read_directive(line)
        if self.enumerators:
            return self._read_enumerator(line)
        if line.startswith(self.ignored_prefixes) or ACCESS.match(line):
            self._skip_statement(line)
            return {"kind": TokenKind.OTHER}
        if EXTERN_C.match(line):
            if line.endswith("{"):
                self._scopes.append("extern")
            return {"kind": TokenKind.OTHER}
        if line.startswith("}"):
            return self._read_scope_end(line)
        if line == "{":
            self._scopes.append("extern")
            return {"kind": TokenKind.OTHER}
        if m := NAMESPACE.match(line):
            self._scopes.append("namespace")
            return {"kind": TokenKind.NAMESPACE, "value": m.group(1).strip()}
        if TEMPLATE.match(line):
            return self._read_template(line)
        if m := CALLBACK.match(line):
            return self._read_callback(m)
        if line.startswith("typedef") and (m := RECORD.match(line)) and ("{" in line or ";" not in line):
            return self._read_record(m)
        if m := TYPEDEF_ALIAS.match(line):
            return {"kind": TokenKind.ALIAS, "value": m.group(2), "type": m.group(1).strip() + (m.group(3) or "")}
        if line.startswith("using"):
            return self._read_using(line)
        if m := FORWARD.match(line):
            return {"kind": TokenKind.FORWARD, "value": m.group(1)}
        if (m := RECORD.match(line)) and ("{" in line or ";" not in line):
            return self._read_record(m)
        return self._read_member(line)

    # Comments and directives

    def _read_line_comments(self, line: str) -> dict:
        is_doc = line.startswith(("///", "//!")) and not line.startswith("////")
        texts = [line]
        while self.pos < len(self.lines):
            nxt = self.lines[self.pos].strip()
            if not nxt.startswith("//") or FORWARD_MARKER.match(nxt):
                break
            if (nxt.startswith(("///", "//!")) and not nxt.startswith("////")) != is_doc:
                break
            texts.append(nxt)
            self.pos += 1
        if not is_doc:
            return {"kind": TokenKind.COMMENT}
        value = "\n".join(re.sub(r"^//[/!]<?\s?", "", text) for text in texts)
        return {"kind": TokenKind.DOC, "value": value.strip()}

    def _read_block_comment(self, line: str) -> dict:
        is_doc = line.startswith("/**") and not line.startswith("/**/")
        texts = [line[3:] if is_doc else line[2:]]
        while "*/" not in texts[-1]:
            nxt = self._take_line()
            if nxt is None:
                raise MalformedSource("unterminated comment", self._last_line_number())
            texts.append(nxt)
        texts[-1] = texts[-1][: texts[-1].index("*/")]
        if not is_doc:
            return {"kind": TokenKind.COMMENT}
        if texts[0].startswith("<"):
            texts[0] = texts[0][1:]
        doc_lines = []
        for text in texts:
            m = STAR_PREFIX.match(text)
            doc_lines.append(text[m.end():] if m else text)
        return {"kind": TokenKind.DOC, "value": "\n".join(doc_lines).strip()}

    def _read_continued(self, line: str) -> list[str]:
        texts = [line]
        while texts[-1].endswith("\\"):
            nxt = self._take_line()
            if nxt is None:
                break
            texts.append(nxt.strip())
        return texts

    def _read_directive(self, line: str) -> dict:
        texts = self._read_continued(line)
        m = DEFINE.match(line)
        if not m or m.group(1).endswith("_"):
            return {"kind": TokenKind.DIRECTIVE, "value": " ".join(t.rstrip("\\").strip() for t in texts)}
        fields = {"kind": TokenKind.DEF, "value": m.group(1)}
        if m.group(2):
            fields["parameters"] = m.group(3).strip()
        replacement = "\n".join([m.group(4).rstrip("\\").strip()] + [t.rstrip("\\").strip() for t in texts[1:]])
        if doc := _inline_doc(replacement):
            fields["doc"] = doc
            replacement = INLINE_DOC.sub("", replacement)
        replacement, _ = strip_code(replacement)
        if replacement.strip():
            fields["initializer"] = replacement.strip()
        return fields

    # Scopes and templates

    def _read_scope_end(self, line: str) -> dict:
        if not self._scopes:
            logger.warning(f"Unbalanced closing brace at line {self._line_number(self.pos - 1)}")
            return {"kind": TokenKind.OTHER}
        if self._scopes.pop() == "namespace":
            return {"kind": TokenKind.END}
        return {"kind": TokenKind.OTHER}

    def _read_template(self, line: str) -> dict:
        rest = line[line.index("<") + 1 :]
        parts = []
        depth = 1
        while True:
            index, depth = find_closing(rest, depth, "<", ">")
            if index >= 0:
                parts.append(rest[:index])
                if rest[index + 1 :].strip():
                    logger.warning(f"Ignoring text after template parameters at line {self._line_number(self.pos - 1)}")
                break
            parts.append(rest)
            nxt = self._take_line()
            if nxt is None:
                raise MalformedSource("unterminated template parameter list", self._last_line_number())
            rest = nxt.strip()
        return {"kind": TokenKind.TEMPLATE, "parameters": "\n".join(parts).strip()}

    # Declarations

    def _read_parenthesized(self, rest: str) -> tuple[str, str]:
        """Read up to the parenthesis closing an already open one.

        Returns the enclosed text and what follows the closing parenthesis.
        """
        parts = []
        depth = 1
        while True:
            index, depth = find_closing(rest, depth)
            if index >= 0:
                parts.append(rest[:index])
                return "\n".join(parts), rest[index + 1 :]
            parts.append(rest)
            nxt = self._take_line()
            if nxt is None:
                raise MalformedSource("unterminated parameter list", self._last_line_number())
            rest = nxt.strip()

    def _read_callback(self, m: re.Match) -> dict:
        parameters, trailer = self._read_parenthesized(m.group(3))
        if ";" not in trailer:
            self._skip_statement(trailer)
        return {
            "kind": TokenKind.CALLBACK,
            "value": m.group(2),
            "type": m.group(1).strip(),
            "parameters": parameters.strip(),
        }

    def _read_using(self, line: str) -> dict:
        if m := USING_DECL.match(line):
            return {"kind": TokenKind.ALIAS, "value": m.group(1)}
        m = USING_ALIAS.match(line)
        if not m:
            return {"kind": TokenKind.UNKNOWN, "value": line}
        type_parts = [m.group(2).strip()]
        if not m.group(3):
            while True:
                nxt = self._take_line()
                if nxt is None:
                    raise MalformedSource("unterminated alias", self._last_line_number())
                nxt = nxt.strip()
                if nxt.endswith(";"):
                    type_parts.append(nxt[:-1].strip())
                    break
                type_parts.append(nxt)
        return {"kind": TokenKind.ALIAS, "value": m.group(1), "type": " ".join(p for p in type_parts if p)}

    def _read_record(self, m: re.Match) -> dict:
        kind = TokenKind(m.group(2) if m.group(2) != "class" else "struct")
        name = m.group(3)
        base = (m.group(4) or "").strip()
        begin = self.pos - 1

        open_index = begin if m.group(5) else None
        while open_index is None:
            index = self._next_nonblank(self.pos)
            if index is None:
                raise MalformedSource(f"expected body for {name}", self._last_line_number())
            text = self.lines[index].strip()
            if text.startswith(":") and not base:
                base = text[1:].rstrip("{").strip()
                self.pos = index + 1
                if text.endswith("{"):
                    open_index = index
            elif text.startswith("{"):
                open_index = index
            else:
                return {"kind": TokenKind.UNKNOWN, "value": name}

        close_index = self._skip_braces(open_index)
        open_line = self.lines[open_index]
        close_line = self.lines[close_index]
        if open_index == close_index:
            inner = open_line[open_line.index("{") + 1 : open_line.rindex("}")]
            body = [inner] if inner.strip() else []
            body_begin = self._line_number(open_index)
        else:
            body = self.lines[open_index + 1 : close_index]
            body_begin = self._line_number(open_index + 1)

        tail, _ = strip_code(close_line[close_line.rindex("}") + 1 :])
        if (tail_name := re.match(r"\s*(\w+)", tail)) and (m.group(1) or not name):
            name = tail_name.group(1)

        fields = {"kind": kind, "value": name, "body": body, "body_begin": body_begin}
        if base:
            fields["type"] = base
        return fields

    def _skip_braces(self, open_index: int, text: str | None = None) -> int:
        """Advance past the braced block opened on line open_index.

        Returns the index of the line holding the closing brace.
        """
        if text is None:
            text = self.lines[open_index]
            text = text[text.index("{") :]
        depth = 0
        in_comment = False
        index = open_index
        while True:
            code, in_comment = strip_code(text, in_comment)
            for c in code:
                if c == "{":
                    depth += 1
                elif c == "}":
                    depth -= 1
                    if depth == 0:
                        self.pos = index + 1
                        return index
            index += 1
            if index >= len(self.lines):
                raise MalformedSource("unterminated body", self._last_line_number())
            text = self.lines[index]

    def _skip_function_tail(self, trailer: str) -> None:
        code, _ = strip_code(trailer)
        if "{" in code:
            self._skip_braces(self.pos - 1, code[code.index("{") :])
            return
        if ";" in code:
            return
        index = self._next_nonblank(self.pos)
        if index is None:
            return
        text = self.lines[index].strip()
        if text.startswith("{"):
            self._skip_braces(index, text)
        elif text.startswith(":"):
            while not (text.startswith("{") or text.endswith("{")):
                index += 1
                if index >= len(self.lines):
                    raise MalformedSource("unterminated constructor initializer", self._last_line_number())
                text = self.lines[index].strip()
            self._skip_braces(index, text[text.index("{") :] if text.endswith("{") else text)
        elif text.startswith("=") or text == "const" or text.startswith(("noexcept", "override")):
            self.pos = index + 1
            self._skip_function_tail(text)

    def _skip_statement(self, text: str) -> None:
        """Skip lines until the parentheses of text balance and a ; is seen."""
        depth = 0
        code, _ = strip_code(text)
        while True:
            depth += code.count("(") - code.count(")")
            if depth <= 0 and (";" in code or ":" in code or not code.strip()):
                return
            nxt = self._take_line()
            if nxt is None:
                if depth > 0:
                    raise MalformedSource("unterminated statement", self._last_line_number())
                return
            code, _ = strip_code(nxt)

    def _read_member(self, line: str) -> dict:
        member = ATTRIBUTES.sub("", line).lstrip()
        m = MEMBER.match(member)
        if not m:
            logger.debug(f"Unknown token at line {self._line_number(self.pos - 1)}: {member}")
            return {"kind": TokenKind.UNKNOWN, "value": member}

        fields: dict = {}
        value = m.group(2)
        type_words = m.group(1).split()
        while type_words and type_words[0] in MEMBER_SPECIFIERS:
            word = type_words.pop(0)
            if word in ("static", "constexpr"):
                fields[word] = True
        type_ = " ".join(type_words)

        extent = ""
        if m.group(3):
            parameters, trailer = self._read_parenthesized(member[m.end() :])
            details = re.match(r"\s*(const)?\s*(&{0,2})", trailer)
            if details.group(1):
                fields["immutable"] = True
            if details.group(2):
                fields["reference"] = len(details.group(2))
            if type_.startswith("operator"):
                value = f"{type_} {_normalize_operator_name(value)}"
                type_ = ""
            fields |= {"kind": TokenKind.FUNCTION, "parameters": parameters.strip()}
            self._skip_function_tail(trailer)
        else:
            rest = member[m.end() :]
            code, _ = strip_code(rest)
            if ";" not in code:
                if not code.rstrip().endswith(("=", "{", ",", "(")):
                    return {"kind": TokenKind.UNKNOWN, "value": member}
                rest += " " + self._read_until_semicolon(code)
            tail = _var_tail(rest)
            extent = tail.pop("extent", "")
            fields |= {"kind": TokenKind.VAR} | tail
            if doc := _inline_doc(rest):
                fields["doc"] = doc

        if pm := POINTER_NAME.match(value):
            type_ = f"{type_} {pm.group(1).replace(' ', '')}".strip()
            value = pm.group(2)
        return fields | {"value": value, "type": type_ + extent}

    def _read_until_semicolon(self, code: str) -> str:
        depth = code.count("{") - code.count("}")
        parts = []
        in_comment = False
        while True:
            nxt = self._take_line()
            if nxt is None:
                raise MalformedSource("unterminated initializer", self._last_line_number())
            text, in_comment = strip_code(nxt, in_comment)
            parts.append(text.strip())
            depth += text.count("{") - text.count("}")
            if depth <= 0 and ";" in text:
                return " ".join(parts)

    def _read_enumerator(self, line: str) -> dict:
        m = ENUMERATOR.match(line)
        if not m:
            return {"kind": TokenKind.UNKNOWN, "value": line}
        fields = {"kind": TokenKind.VAR, "value": m.group(1)}
        if m.group(2):
            fields["initializer"] = m.group(2).strip()
        doc = m.group(3) if m.group(3) is not None else m.group(4)
        if doc is not None:
            fields["doc"] = doc.strip()
        return fields


def _var_tail(rest: str) -> dict:
    """Split a variable statement tail into array extent and initializer."""
    code, _ = strip_code(rest)
    code = code.strip().rstrip(";").strip()
    fields = {}
    if m := re.match(r"^((?:\[[^\]]*\]\s*)+)", code):
        fields["extent"] = m.group(1).replace(" ", "")
        code = code[m.end() :].strip()
    if code.startswith("="):
        code = code[1:].strip()
    if code:
        fields["initializer"] = code
    return fields


def tokenize(lines: Sequence[str], **kwargs) -> list[Token]:
    """Tokenize the lines of one file, ending with an eof token."""
    return Tokenizer(lines, **kwargs).tokenize()
