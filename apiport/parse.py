#!/usr/bin/env python3
"""Build ApiFile models out of token streams."""

import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path

from apiport.config import FloatingDocPolicy, ParseOptions
from apiport.errors import ApiportError, UnknownEntryKind
from apiport.models import Api, ApiEntries, ApiFile, ApiParameters, Entry, EntryKind, Parameter, Token, TokenKind
from apiport.tokenize import tokenize

logger = logging.getLogger(__name__)

INCLUDE = re.compile(r'^#\s*include\s*([<"])([^>"]+)[>"]')
PARAMETER = re.compile(r"^(.*[\s*&])(\w+)\s*(\[[^\]]*\])?$", re.DOTALL)

IGNORED_KINDS = {TokenKind.COMMENT, TokenKind.OTHER, TokenKind.DIRECTIVE, TokenKind.NAMESPACE}


def normalize_type(type_: str) -> str:
    """Space pointer marks consistently: `Foo*` to `Foo *`, `char * *` to `char **`."""
    type_ = " ".join(type_.split())
    type_ = re.sub(r"(\w+)\s*([&*])", r"\1 \2", type_)
    type_ = re.sub(r"([*&])\s+(?=[*&])", r"\1", type_)
    return type_


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split at separators outside of brackets and quotes."""
    parts = []
    depth = 0
    quote = ""
    current = []
    for c in text:
        if quote:
            if c == quote:
                quote = ""
        elif c in "\"'":
            quote = c
        elif c in "(<[{":
            depth += 1
        elif c in ")>]}":
            depth -= 1
        elif c == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(c)
    parts.append("".join(current))
    return parts


def _split_default(fragment: str) -> tuple[str, str | None]:
    depth = 0
    for i, c in enumerate(fragment):
        if c in "(<[{":
            depth += 1
        elif c in ")>]}":
            depth -= 1
        elif c == "=" and depth == 0:
            if fragment[i + 1 : i + 2] == "=" or fragment[i - 1 : i] in "=!<>":
                continue
            return fragment[:i].strip(), fragment[i + 1 :].strip()
    return fragment.strip(), None


def parse_params(text: str | None) -> ApiParameters:
    """Parse raw parameter text into Parameters.

    Fragments that do not end in a name (unnamed parameters, function
    pointers, varargs) are kept as raw strings.
    """
    text = " ".join((text or "").split())
    if not text or text == "void":
        return []
    result: ApiParameters = []
    for fragment in split_top_level(text):
        declaration, default = _split_default(fragment)
        if not declaration:
            continue
        m = PARAMETER.match(declaration)
        if not m or not m.group(1).strip():
            result.append(fragment.strip())
            continue
        type_ = normalize_type(m.group(1)) + (m.group(3) or "")
        result.append(Parameter(name=m.group(2), type=type_, default=default))
    return result


class ContentParser:
    """Groups the tokens of one file into entries."""

    def __init__(self, name: str, tokens: Sequence[Token], options: ParseOptions | None = None):
        self.name = name
        self.tokens = tokens
        self.options = options or ParseOptions()
        self.doc = ""
        self.doc_begin: int | None = None
        self.doc_end: int | None = None
        self.entries_begin: int | None = None
        self.entries_end: int | None = None
        self.includes: list[str] = []
        self.local_includes: list[str] = []
        self._seen_declaration = False

    def parse(self) -> ApiFile:
        entries: ApiEntries = {}
        pending_doc: Token | None = None
        template: Token | None = None

        for token in self.tokens:
            if token.kind == TokenKind.EOF:
                self.entries_end = self.entries_end or token.begin
                break
            if token.kind == TokenKind.END:
                self.entries_end = token.begin
                break
            if token.kind == TokenKind.DOC:
                if pending_doc is not None:
                    self._floating_doc(pending_doc)
                pending_doc = token
                continue
            if token.kind == TokenKind.TEMPLATE:
                self._check_template(template, token)
                template = token
                continue

            if not token.is_declaration:
                if token.kind == TokenKind.UNKNOWN and self.options.tolerate_unknown:
                    if template is not None:
                        logger.warning(f"{self.name}:{template.begin}: dropping template followed by unknown statement")
                        template = None
                else:
                    self._check_template(template, token)
                if pending_doc is not None:
                    self._floating_doc(pending_doc)
                    pending_doc = None
                if token.kind == TokenKind.UNKNOWN:
                    if not self.options.tolerate_unknown:
                        raise UnknownEntryKind(token.kind.value, token.begin, token.value)
                    logger.warning(f"{self.name}:{token.begin}: skipping unknown statement {token.value!r}")
                elif token.kind == TokenKind.NAMESPACE:
                    self.entries_begin = token.end
                elif token.kind == TokenKind.DIRECTIVE:
                    self._record_include(token.value)
                continue

            first = template or token
            doc_token = None
            if pending_doc is not None:
                if pending_doc.end == first.begin:
                    doc_token = pending_doc
                else:
                    self._floating_doc(pending_doc)
                pending_doc = None

            entry = self.build_entry(token, doc_token, template)
            template = None
            if not self._seen_declaration:
                self._seen_declaration = True
                if self.entries_begin is None:
                    self.entries_begin = (doc_token or first).begin
            self._insert(entries, entry)

        if template is not None:
            raise UnknownEntryKind(template.kind.value, template.begin, "template without declaration")

        fields = {"name": self.name, "doc": self.doc, "entries": entries}
        if self.includes:
            fields["includes"] = self.includes
        if self.local_includes:
            fields["local_includes"] = self.local_includes
        if self.options.store_line_numbers:
            fields |= {
                "doc_begin": self.doc_begin,
                "doc_end": self.doc_end,
                "entries_begin": self.entries_begin,
                "entries_end": self.entries_end,
            }
        return ApiFile(**fields)

    def _check_template(self, template: Token | None, token: Token) -> None:
        if template is not None:
            raise UnknownEntryKind(template.kind.value, template.begin, f"template followed by {token.kind.value}")

    def _floating_doc(self, token: Token) -> None:
        if not self._seen_declaration and not self.doc:
            self.doc = token.value
            self.doc_begin = token.begin
            self.doc_end = token.end
        elif self.options.floating_docs == FloatingDocPolicy.APPEND and token.value:
            self.doc = f"{self.doc}\n\n{token.value}" if self.doc else token.value
        else:
            logger.debug(f"{self.name}:{token.begin}: discarding floating doc")

    def _record_include(self, directive: str) -> None:
        m = INCLUDE.match(directive)
        if not m:
            return
        if m.group(1) == "<":
            self.includes.append(m.group(2))
        else:
            self.local_includes.append(m.group(2))

    def build_entry(self, token: Token, doc_token: Token | None, template: Token | None) -> Entry:
        kind = EntryKind(token.kind.value)
        fields = {"name": token.value, "kind": kind, "doc": doc_token.value if doc_token else (token.doc or "")}
        if token.type:
            fields["type"] = normalize_type(token.type)
        if kind in (EntryKind.FUNCTION, EntryKind.CALLBACK):
            fields["parameters"] = parse_params(token.parameters)
        elif kind == EntryKind.DEF and token.parameters is not None:
            fields["parameters"] = [Parameter(name=p.strip()) for p in token.parameters.split(",") if p.strip()]
        if template is not None:
            fields["template"] = parse_params(template.parameters)
        if token.body is not None:
            fields["entries"] = self._parse_body(token)
        for flag in ("immutable", "static", "constexpr"):
            if getattr(token, flag):
                fields[flag] = True
        if token.reference:
            fields["reference"] = token.reference
        if token.initializer is not None:
            fields["value"] = token.initializer
        if self.options.store_line_numbers:
            fields["begin"] = (doc_token or template or token).begin
            fields["decl"] = token.begin
            fields["end"] = token.end
        return Entry(**fields)

    def _parse_body(self, token: Token) -> ApiEntries:
        tokens = tokenize(token.body, first_line=token.body_begin or token.begin, enumerators=token.kind == TokenKind.ENUM)
        nested = ContentParser(f"{self.name}:{token.value}", tokens, self.options)
        nested._seen_declaration = True
        return nested.parse().entries

    def _insert(self, entries: ApiEntries, entry: Entry) -> None:
        # Anonymous members belong to the enclosing scope
        if not entry.name and entry.entries is not None:
            for nested in entry.entries.values():
                for item in nested if isinstance(nested, list) else [nested]:
                    self._insert(entries, item)
            return
        key = f"{entry.name}-forward" if entry.kind == EntryKind.FORWARD else entry.name
        current = entries.get(key)
        if current is None:
            entries[key] = entry
        elif entry.kind == EntryKind.FUNCTION and (isinstance(current, list) or current.kind == EntryKind.FUNCTION):
            entries[key] = (current if isinstance(current, list) else [current]) + [entry]
        elif not isinstance(current, list) and not current.doc and entry.doc:
            entries[key] = entry
        else:
            logger.debug(f"{self.name}: ignoring duplicate {entry.kind.value} {entry.name}")


def parse_tokens(name: str, tokens: Iterable[Token], options: ParseOptions | None = None) -> ApiFile:
    return ContentParser(name, list(tokens), options).parse()


def parse_content(name: str, content: str | Sequence[str], options: ParseOptions | None = None) -> ApiFile:
    """Tokenize and parse the content of one file."""
    lines = content.splitlines() if isinstance(content, str) else list(content)
    return parse_tokens(name, tokenize(lines), options)


def parse_api(base_dir: Path, sources: Iterable[str], options: ParseOptions | None = None) -> Api:
    """Read and parse several files relative to base_dir."""
    api = Api()
    for source in sources:
        path = Path(base_dir) / source
        logger.info(f"Reading {path}")
        try:
            api_file = parse_content(path.name, path.read_text(), options)
        except ApiportError as e:
            raise ApiportError(f"{source}: {e}") from e
        api.files[api_file.name] = api_file
    return api
