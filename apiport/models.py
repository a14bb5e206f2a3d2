#!/usr/bin/env python3
"""Records passed between the pipeline stages.

Tokens come out of the tokenizer, Entries and ApiFiles out of the model
builder and the transform. All of them are plain pydantic models so they can
be dumped to JSON with a stable key order that follows the source.
"""

from collections.abc import Iterator
from enum import Enum
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TokenKind(str, Enum):
    DOC = "doc"
    FUNCTION = "function"
    VAR = "var"
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    CALLBACK = "callback"
    ALIAS = "alias"
    FORWARD = "forward"
    DEF = "def"
    TEMPLATE = "template"
    NAMESPACE = "namespace"
    END = "end"
    DIRECTIVE = "directive"
    COMMENT = "comment"
    OTHER = "other"
    UNKNOWN = "unknown"
    EOF = "eof"


class EntryKind(str, Enum):
    ALIAS = "alias"
    CALLBACK = "callback"
    DEF = "def"
    ENUM = "enum"
    FORWARD = "forward"
    FUNCTION = "function"
    STRUCT = "struct"
    UNION = "union"
    VAR = "var"


# Token kinds that become an Entry of the same name.
DECLARATION_KINDS = {kind.value for kind in EntryKind}


class Token(BaseModel):
    """One syntactic unit of a header, covering the lines [begin, end)."""

    model_config = ConfigDict(frozen=True)

    kind: TokenKind
    value: str = ""
    type: str = ""
    # Raw text between the parentheses, newlines kept; parse.parse_params splits it
    parameters: str | None = None
    immutable: bool = False
    static: bool = False
    constexpr: bool = False
    reference: int = 0
    doc: str | None = None
    initializer: str | None = None
    begin: int
    end: int
    spaces: int = 0

    # Raw lines of a struct/union/enum body, left for the model builder.
    body: list[str] | None = None
    body_begin: int | None = None

    @property
    def is_declaration(self) -> bool:
        return self.kind.value in DECLARATION_KINDS


class Parameter(BaseModel):
    name: str
    type: str = ""
    default: str | None = None


ApiParameters = list[Union[Parameter, str]]


def _check_entries(entries: dict | None) -> dict | None:
    if entries is None:
        return entries
    for name, value in entries.items():
        if isinstance(value, list) and not value:
            raise ValueError(f"Entry {name} maps to an empty overload list")
    return entries


class Entry(BaseModel):
    """A declared API element."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    kind: EntryKind
    doc: str = ""
    type: str | None = None
    parameters: ApiParameters | None = None
    template: ApiParameters | None = None
    entries: "dict[str, Entry | list[Entry]] | None" = None

    immutable: bool | None = None
    constexpr: bool | None = None
    static: bool | None = None
    reference: int | None = None
    # Initializer or macro replacement text
    value: str | None = None

    # Name of the source entry this one was transformed from
    source_name: str | None = None

    begin: int | None = None
    decl: int | None = None
    end: int | None = None

    @field_validator("entries")
    @classmethod
    def check_entries(cls, value):
        return _check_entries(value)

    def to_record(self) -> dict[str, Any]:
        """Plain dict form, keys in declaration order."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def without_line_numbers(self) -> "Entry":
        return self.model_copy(update={"begin": None, "decl": None, "end": None})


Entry.model_rebuild()

ApiEntries = dict[str, Union[Entry, list[Entry]]]


def iter_entries(entries: ApiEntries) -> Iterator[Entry]:
    """Yield every entry in order, flattening overload lists."""
    for value in entries.values():
        if isinstance(value, list):
            yield from value
        else:
            yield value


class ApiFile(BaseModel):
    """The model of one header."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    doc: str = ""
    entries: ApiEntries = Field(default_factory=dict)
    includes: list[str] | None = None
    local_includes: list[str] | None = None

    doc_begin: int | None = None
    doc_end: int | None = None
    entries_begin: int | None = None
    entries_end: int | None = None

    @field_validator("entries")
    @classmethod
    def check_entries(cls, value):
        return _check_entries(value)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Api(BaseModel):
    """A set of files, keyed by file name."""

    files: dict[str, ApiFile] = Field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def load_from_file(cls, path: Path) -> "Api":
        """Load an Api snapshot from a JSON file."""
        return cls.model_validate_json(path.read_text())

    def save_to_file(self, path: Path) -> None:
        """Save the Api as indented JSON."""
        path.write_text(self.model_dump_json(by_alias=True, exclude_none=True, indent=2))
