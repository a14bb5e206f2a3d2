#!/usr/bin/env python3
"""Render target ApiFiles as C++ headers.

The layout is the one the amalgamator expects: a header guard, the includes,
then every entry inside `namespace NS {` ... `} // namespace NS`.
"""

import logging
import re
from pathlib import Path

from apiport.config import GenerateOptions
from apiport.models import Api, ApiFile, ApiParameters, Entry, EntryKind, Parameter, iter_entries

logger = logging.getLogger(__name__)

EXTENT = re.compile(r"^(.*?)\s*((?:\[[^\]]*\])+)$")
INDENT = "  "


def header_guard(name: str, options: GenerateOptions) -> str:
    stem = re.sub(r"\W", "_", name.rsplit(".", 1)[0]).upper()
    return f"{options.guard_prefix}{stem}{options.guard_suffix}"


def declare(type_: str | None, name: str) -> str:
    """`type name` with pointer marks glued to the name and extents after it."""
    type_ = type_ or ""
    extent = ""
    if m := EXTENT.match(type_):
        type_, extent = m.group(1), m.group(2)
    if not type_:
        return name + extent
    separator = "" if type_.endswith(("*", "&")) else " "
    return f"{type_}{separator}{name}{extent}"


def format_parameter(parameter: Parameter | str) -> str:
    if isinstance(parameter, str):
        return parameter
    text = declare(parameter.type, parameter.name)
    if parameter.default is not None:
        text += f" = {parameter.default}"
    return text


def format_parameters(parameters: ApiParameters | None) -> str:
    return ", ".join(format_parameter(p) for p in parameters or [])


def render_doc(doc: str, indent: str = "") -> list[str]:
    if not doc:
        return []
    lines = [f"{indent}/**"]
    lines += [f"{indent} * {line}".rstrip() for line in doc.splitlines()]
    lines.append(f"{indent} */")
    return lines


def _render_function(entry: Entry) -> str:
    text = declare(entry.type, f"{entry.name}({format_parameters(entry.parameters)})")
    if entry.constexpr:
        text = f"constexpr {text}"
    if entry.static:
        text = f"static {text}"
    if entry.immutable:
        text += " const"
    if entry.reference:
        text += " " + "&" * entry.reference
    return text + ";"


def _render_var(entry: Entry) -> str:
    text = declare(entry.type, entry.name)
    if entry.constexpr:
        text = f"constexpr {text}"
    if entry.static:
        text = f"static {text}"
    if entry.value is not None:
        text += f" = {entry.value}"
    return text + ";"


def _render_record(entry: Entry, indent: str) -> list[str]:
    keyword = "struct" if entry.kind == EntryKind.STRUCT else entry.kind.value
    head = f"{indent}{keyword} {entry.name}"
    if entry.type:
        head += f" : {entry.type}"
    lines = [head, f"{indent}{{"]
    for fragment in entry.parameters or []:
        lines.append(f"{indent}{INDENT}{format_parameter(fragment)}")
    if entry.kind == EntryKind.ENUM:
        for enumerator in iter_entries(entry.entries or {}):
            lines += render_doc(enumerator.doc, indent + INDENT)
            value = f" = {enumerator.value}" if enumerator.value is not None else ""
            lines.append(f"{indent}{INDENT}{enumerator.name}{value},")
    else:
        for nested in iter_entries(entry.entries or {}):
            lines += render_entry(nested, indent + INDENT)
    lines.append(f"{indent}}};")
    return lines


def render_entry(entry: Entry, indent: str = "") -> list[str]:
    """Render one entry with its doc comment."""
    lines = render_doc(entry.doc, indent)
    if entry.template is not None:
        lines.append(f"{indent}template<{format_parameters(entry.template)}>")

    match entry.kind:
        case EntryKind.ALIAS:
            if entry.type is None:
                lines.append(f"{indent}using {entry.name};")
            else:
                target = f"::{entry.type}" if entry.type == entry.name else entry.type
                lines.append(f"{indent}using {entry.name} = {target};")
        case EntryKind.CALLBACK:
            lines.append(f"{indent}using {entry.name} = {entry.type or 'void'}(*)({format_parameters(entry.parameters)});")
        case EntryKind.FUNCTION:
            lines.append(indent + _render_function(entry))
        case EntryKind.VAR:
            lines.append(indent + _render_var(entry))
        case EntryKind.DEF:
            head = entry.name
            if entry.parameters is not None:
                head += f"({format_parameters(entry.parameters)})"
            value = f" {entry.value}" if entry.value else ""
            lines.append(f"#define {head}{value}")
        case EntryKind.FORWARD:
            lines += [f"{indent}// Forward decl", f"{indent}struct {entry.name};"]
        case EntryKind.STRUCT | EntryKind.UNION | EntryKind.ENUM:
            lines += _render_record(entry, indent)
    return lines


def generate_file(api_file: ApiFile, options: GenerateOptions | None = None) -> list[str]:
    """Render one target file as header lines."""
    options = options or GenerateOptions()
    guard = header_guard(api_file.name, options)
    lines = [f"#ifndef {guard}", f"#define {guard}", ""]

    includes = [f"#include <{name}>" for name in sorted(api_file.includes or [])]
    includes += [f'#include "{name}"' for name in sorted(api_file.local_includes or [])]
    if includes:
        lines += includes + [""]

    lines += [f"namespace {options.namespace} {{", ""]
    if doc := render_doc(api_file.doc):
        lines += doc + [""]
    for entry in iter_entries(api_file.entries):
        lines += render_entry(entry) + [""]
    lines += [f"}} // namespace {options.namespace}", "", f"#endif /* {guard} */"]
    return lines


def generate_api(api: Api, options: GenerateOptions | None = None) -> dict[str, list[str]]:
    return {name: generate_file(api_file, options) for name, api_file in api.files.items()}


def write_api(api: Api, output_dir: Path, options: GenerateOptions | None = None) -> list[Path]:
    """Write one header per file into output_dir."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, lines in generate_api(api, options).items():
        path = output_dir / name
        logger.info(f"Writing {path}")
        path.write_text("\n".join(lines) + "\n")
        written.append(path)
    return written
