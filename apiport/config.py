#!/usr/bin/env python3

import json
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from apiport.models import ApiParameters, Entry


class CamelModel(BaseModel):
    """Base for records stored on disk with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FloatingDocPolicy(str, Enum):
    """What to do with doc comments that precede no declaration."""

    DISCARD = "discard"
    APPEND = "append"


class ParseOptions(CamelModel):
    store_line_numbers: bool = False
    tolerate_unknown: bool = False
    floating_docs: FloatingDocPolicy = FloatingDocPolicy.DISCARD


class ReplacementRule(CamelModel):
    """A regex substitution applied with re.sub."""

    pattern: str
    replacement: str


class TypeDeclaration(CamelModel):
    """How an alias should be reclassified."""

    kind: str
    name: str | None = None


TypeRule = Union[Literal["resource"], TypeDeclaration]


class EntryPatch(CamelModel):
    """Partial entry merged over a transformed entry."""

    name: str | None = None
    kind: str | None = None
    doc: str | None = None
    type: str | None = None
    parameters: ApiParameters | None = None
    template: ApiParameters | None = None
    entries: dict[str, Any] | None = None
    immutable: bool | None = None
    constexpr: bool | None = None
    static: bool | None = None
    reference: int | None = None
    value: str | None = None


class IncludeAt(CamelModel):
    begin: list[Entry] = Field(default_factory=list)


class FileTransform(CamelModel):
    """Rules for one file, keyed by its source or default target name."""

    name: str | None = None
    doc: str | None = None
    include_defs: list[str] = Field(default_factory=list)
    ignore_entries: list[str] = Field(default_factory=list)
    include_at: IncludeAt = Field(default_factory=IncludeAt)
    transform: dict[str, EntryPatch] = Field(default_factory=dict)
    types: dict[str, TypeRule] = Field(default_factory=dict)
    includes: list[str] | None = None
    local_includes: list[str] | None = None

    def type_declaration(self, name: str) -> TypeDeclaration | None:
        rule = self.types.get(name)
        if rule is None:
            return None
        if isinstance(rule, str):
            return TypeDeclaration(kind=rule)
        return rule


def _default_doc_rules() -> list[ReplacementRule]:
    return [ReplacementRule(pattern=r"\\(\w+)", replacement=r"@\1")]


class ApiTransform(CamelModel):
    """Configuration of a whole transform run."""

    prefixes: list[str] = Field(default_factory=list)
    rename_rules: list[ReplacementRule] = Field(default_factory=list)
    doc_rules: list[ReplacementRule] = Field(default_factory=_default_doc_rules)
    type_map: dict[str, str] = Field(default_factory=dict)
    param_type_map: dict[str, str] = Field(default_factory=dict)
    return_type_map: dict[str, str] = Field(default_factory=dict)
    files: dict[str, FileTransform] = Field(default_factory=dict)

    def file_config(self, source_name: str, target_name: str) -> FileTransform:
        """Rules for a file, looked up by source name then target name."""
        config = self.files.get(source_name) or self.files.get(target_name)
        return config if config is not None else FileTransform()

    @classmethod
    def load_from_file(cls, config_path: Path) -> "ApiTransform":
        """Load configuration from a JSON or YAML file."""
        return cls.model_validate(_read_data(config_path))

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration, as YAML when the suffix asks for it."""
        data = self.model_dump(mode="json", by_alias=True, exclude_unset=True)
        _write_data(config_path, data)


class GenerateOptions(CamelModel):
    namespace: str = "SDL"
    guard_prefix: str = "SDL3PP_"
    guard_suffix: str = "_H_"


class AmalgamateOptions(CamelModel):
    namespace: str = "SDL"
    guard: str = "SDL3PP_H_"
    title: str = "Amalgamated SDL3pp"
    # Appended after the sorted system includes
    master_include: str = "SDL3/SDL.h"
    # System includes under this prefix are covered by the master include
    master_prefix: str = "SDL3/"

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AmalgamateOptions":
        return cls.model_validate(_read_data(config_path))


def _read_data(config_path: Path) -> dict[str, Any]:
    text = config_path.read_text()
    if config_path.suffix in (".yaml", ".yml"):
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _write_data(config_path: Path, data: dict[str, Any]) -> None:
    if config_path.suffix in (".yaml", ".yml"):
        config_path.write_text(yaml.safe_dump(data, sort_keys=False))
    else:
        config_path.write_text(json.dumps(data, indent=2))
