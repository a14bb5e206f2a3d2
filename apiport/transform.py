#!/usr/bin/env python3
"""Rewrite source ApiFiles into target ApiFiles.

Names lose their prefixes, types go through the type maps, records collapse
into aliases of the source type and aliases declared as resources become
`<Name>Base` class templates. Entries are never modified in place; every
rewritten entry remembers the name it came from in `source_name`.
"""

import logging
import re
from dataclasses import dataclass, field

from apiport.config import ApiTransform, FileTransform, ReplacementRule
from apiport.errors import ConfigurationMismatch
from apiport.models import Api, ApiEntries, ApiFile, Entry, EntryKind, Parameter

logger = logging.getLogger(__name__)

COLLAPSED_KINDS = {EntryKind.STRUCT, EntryKind.UNION, EntryKind.ENUM, EntryKind.CALLBACK}


@dataclass
class TransformContext:
    """Type maps shared by all the files of one transform run."""

    type_map: dict[str, str] = field(default_factory=dict)
    param_type_map: dict[str, str] = field(default_factory=dict)
    return_type_map: dict[str, str] = field(default_factory=dict)
    warnings: list[ConfigurationMismatch] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: ApiTransform) -> "TransformContext":
        return cls(
            type_map=dict(config.type_map),
            param_type_map=dict(config.param_type_map),
            return_type_map=dict(config.return_type_map),
        )

    def copy(self) -> "TransformContext":
        return TransformContext(
            type_map=dict(self.type_map),
            param_type_map=dict(self.param_type_map),
            return_type_map=dict(self.return_type_map),
            warnings=list(self.warnings),
        )

    def map_type(self, type_: str) -> str:
        return self.type_map.get(type_, type_)

    def map_param_type(self, type_: str) -> str:
        if type_ in self.param_type_map:
            return self.param_type_map[type_]
        return self.map_type(type_)

    def map_return_type(self, type_: str) -> str:
        if type_ in self.return_type_map:
            return self.return_type_map[type_]
        return self.map_type(type_)

    def register_alias(self, source: str, target: str) -> None:
        for prefix in ("", "const "):
            for suffix in ("", " *"):
                self.type_map[f"{prefix}{source}{suffix}"] = f"{prefix}{target}{suffix}"

    def register_resource(self, source: str, name: str) -> None:
        for suffix in ("", " *"):
            self.param_type_map[f"{source}{suffix}"] = f"{name}Ref"
            self.return_type_map[f"{source}{suffix}"] = name

    def warn(self, warning: ConfigurationMismatch) -> None:
        self.warnings.append(warning)


def apply_rules(text: str, rules: list[ReplacementRule]) -> str:
    for rule in rules:
        text = re.sub(rule.pattern, rule.replacement, text)
    return text


def default_name(name: str, config: ApiTransform) -> str:
    """Strip the first matching prefix, then apply the rename rules."""
    for prefix in config.prefixes:
        if name.startswith(prefix) and len(name) > len(prefix):
            name = name[len(prefix) :]
            break
    return apply_rules(name, config.rename_rules)


def target_file_name(name: str, config: ApiTransform) -> str:
    name = default_name(name, config)
    if name.endswith(".h"):
        name = name + "pp"
    return name


def entry_key(entry: Entry) -> str:
    return f"{entry.name}-forward" if entry.kind == EntryKind.FORWARD else entry.name


def _is_excluded(entry: Entry, name: str, file_config: FileTransform) -> bool:
    if entry.name in file_config.ignore_entries or name in file_config.ignore_entries:
        return True
    if entry.kind == EntryKind.DEF:
        return entry.name not in file_config.include_defs and name not in file_config.include_defs
    return False


def _transform_parameters(parameters, context: TransformContext):
    if parameters is None:
        return None
    result = []
    for parameter in parameters:
        if isinstance(parameter, Parameter):
            parameter = parameter.model_copy(update={"type": context.map_param_type(parameter.type)})
        result.append(parameter)
    return result


def transform_entry(
    entry: Entry,
    context: TransformContext,
    file_config: FileTransform,
    config: ApiTransform,
    *,
    overrides: bool = True,
) -> Entry | None:
    """Transform a single entry, or return None when it is left out."""
    if entry.source_name is not None:
        return entry
    name = default_name(entry.name, config)
    if _is_excluded(entry, name, file_config):
        logger.debug(f"Skipping {entry.kind.value} {entry.name}")
        return None

    declaration = file_config.type_declaration(entry.name) or file_config.type_declaration(name)
    if declaration is not None and (entry.kind != EntryKind.ALIAS or declaration.kind != "resource"):
        context.warn(ConfigurationMismatch(entry.name, declaration.kind, entry.kind.value))
        declaration = None

    fields = {
        "name": name,
        "kind": entry.kind,
        "doc": entry.doc,
        "source_name": entry.name,
        "begin": entry.begin,
        "decl": entry.decl,
        "end": entry.end,
    }
    resource = declaration is not None
    if entry.kind == EntryKind.FUNCTION:
        fields |= {
            "type": context.map_return_type(entry.type) if entry.type is not None else None,
            "parameters": _transform_parameters(entry.parameters, context),
            "template": entry.template,
            "immutable": entry.immutable,
            "static": entry.static,
            "constexpr": entry.constexpr,
            "reference": entry.reference,
        }
    elif entry.kind == EntryKind.VAR:
        fields |= {
            "type": context.map_type(entry.type) if entry.type is not None else None,
            "value": entry.value,
            "static": entry.static,
            "constexpr": entry.constexpr,
        }
    elif entry.kind == EntryKind.DEF:
        fields |= {"parameters": entry.parameters, "value": entry.value}
    elif entry.kind in COLLAPSED_KINDS:
        fields |= {"kind": EntryKind.ALIAS, "type": entry.name}
    elif entry.kind == EntryKind.ALIAS and resource:
        resource_name = declaration.name or name
        context.register_resource(entry.name, resource_name)
        fields |= {
            "name": f"{resource_name}Base",
            "kind": EntryKind.STRUCT,
            "type": "T",
            "template": [Parameter(name="T", type="class")],
            "parameters": ["using T::T;"],
        }
    elif entry.kind == EntryKind.ALIAS:
        fields["type"] = entry.name

    if overrides and (patch := file_config.transform.get(name)) is not None:
        if patch.name is None:
            patch.name = fields["name"]
        fields |= patch.model_dump(exclude_unset=True)

    result = Entry.model_validate(fields)
    if result.kind == EntryKind.ALIAS and not resource:
        if result.name == result.type:
            logger.debug(f"Dropping alias {result.name} to itself")
            return None
        if result.type:
            context.register_alias(result.type, result.name)
    return result.model_copy(update={"doc": apply_rules(result.doc, config.doc_rules)})


def transform_entries(
    entries: ApiEntries,
    context: TransformContext,
    file_config: FileTransform,
    config: ApiTransform,
) -> ApiEntries:
    result: ApiEntries = {}
    for key, value in entries.items():
        if isinstance(value, list):
            # Overloads all take the default name, overrides do not apply to them
            items = [transform_entry(item, context, file_config, config, overrides=False) for item in value]
            items = [item for item in items if item is not None]
            if items:
                result.setdefault(items[0].name, items)
            continue
        entry = transform_entry(value, context, file_config, config)
        if entry is None:
            continue
        target_key = entry_key(entry)
        if target_key in result:
            logger.debug(f"Ignoring duplicate {target_key} from {key}")
            continue
        result[target_key] = entry
    return result


def transform_file(source: ApiFile, context: TransformContext, config: ApiTransform) -> ApiFile:
    target_name = target_file_name(source.name, config)
    file_config = config.file_config(source.name, target_name)
    if file_config.name:
        target_name = file_config.name
    logger.info(f"Transforming {source.name} into {target_name}")

    doc = file_config.doc if file_config.doc is not None else source.doc
    if not doc.startswith("@file"):
        doc = f"@file {target_name}\n\n{doc}".strip()

    # Fixed entries are already in target form
    entries: ApiEntries = {
        entry_key(entry): entry if entry.source_name is not None else entry.model_copy(update={"source_name": entry.name})
        for entry in file_config.include_at.begin
    }
    for key, value in transform_entries(source.entries, context, file_config, config).items():
        if key in entries:
            logger.debug(f"{target_name}: {key} replaced by a fixed entry")
            continue
        entries[key] = value

    return ApiFile(
        name=target_name,
        doc=apply_rules(doc, config.doc_rules),
        entries=entries,
        includes=file_config.includes if file_config.includes is not None else source.includes,
        local_includes=file_config.local_includes if file_config.local_includes is not None else source.local_includes,
    )


def transform_api(api: Api, config: ApiTransform, names: list[str] | None = None) -> tuple[Api, list[ConfigurationMismatch]]:
    """Transform the files of api, or only those listed in names.

    Returns the target Api and the configuration mismatches found.
    """
    context = TransformContext.from_config(config)
    result = Api()
    for name, source in api.files.items():
        if names is not None and name not in names:
            continue
        target = transform_file(source, context, config)
        result.files[target.name] = target
    for warning in context.warnings:
        logger.warning(str(warning))
    return result, list(context.warnings)
