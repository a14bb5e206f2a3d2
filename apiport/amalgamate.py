#!/usr/bin/env python3
"""Merge a tree of generated headers into a single header.

Starting from a root header, quoted includes are followed breadth first.
Each file contributes the lines of its namespace block, or for files whose
body sits under a preprocessor condition, the whole conditional block.
Files are emitted so that every file comes after the files it includes.
"""

import logging
import re
from collections import deque
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

from pydantic import BaseModel, Field

from apiport.config import AmalgamateOptions
from apiport.errors import DependencyCycle, MissingClosingMarker

logger = logging.getLogger(__name__)

INCLUDE = re.compile(r'^#\s*include\s*(["<])([\w./*-]+)[">]')

Resolver = Callable[[str], Sequence[str]]


class DependencyFile(BaseModel):
    """The parts of one header the amalgamation needs."""

    name: str
    deps: set[str] = Field(default_factory=set)
    includes: list[str] = Field(default_factory=list)
    conditional: bool = False
    content: list[str] | None = None


class Amalgamation(BaseModel):
    includes: list[str] = Field(default_factory=list)
    files: list[DependencyFile] = Field(default_factory=list)


def _conditional_content(result: DependencyFile, lines: Sequence[str], start: int) -> DependencyFile:
    end = next((i for i in range(len(lines) - 1, start, -1) if lines[i].startswith("#endif")), None)
    if end is None:
        raise MissingClosingMarker(result.name, "#endif")
    content = []
    for line in lines[start:end]:
        m = INCLUDE.match(line)
        if m and m.group(1) == '"':
            result.deps.add(m.group(2))
            continue
        content.append(line)
    result.content = content
    return result


def parse_dependency_file(name: str, lines: Sequence[str], options: AmalgamateOptions | None = None) -> DependencyFile:
    """Find the dependencies, includes and content of one header."""
    options = options or AmalgamateOptions()
    namespace_open = f"namespace {options.namespace} {{"
    namespace_close = f"}} // namespace {options.namespace}"
    result = DependencyFile(name=name)

    state = "begin"
    content_start = 0
    i = 0
    while i < len(lines):
        line = lines[i]
        if state == "begin":
            if line.startswith("#ifndef") and i + 1 < len(lines) and lines[i + 1].startswith("#define"):
                state = "includes"
                i += 1
        elif state == "includes":
            if m := INCLUDE.match(line):
                if m.group(1) == '"':
                    result.deps.add(m.group(2))
                elif not m.group(2).startswith(options.master_prefix):
                    result.includes.append(m.group(2))
            elif line.startswith(namespace_open):
                content_start = i + 1
                state = "content"
            elif line.startswith("#if"):
                result.conditional = True
                return _conditional_content(result, lines, i)
        elif line.startswith(namespace_close):
            result.content = list(lines[content_start:i])
            return result
        i += 1

    if state == "content":
        raise MissingClosingMarker(name, namespace_close)
    if result.content is None:
        logger.debug(f"{name} has no content")
    return result


def collect_files(root: str, resolver: Resolver, options: AmalgamateOptions | None = None) -> Amalgamation:
    """Parse root and everything it includes, breadth first."""
    options = options or AmalgamateOptions()
    result = Amalgamation()
    includes: set[str] = set()
    seen: set[str] = set()
    queue = deque([root])
    while queue:
        name = queue.popleft()
        if name in seen:
            continue
        seen.add(name)
        logger.info(f"Reading {name}")
        file = parse_dependency_file(name, resolver(name), options)
        queue.extend(sorted(file.deps))
        result.files.append(file)
        if not file.conditional:
            includes.update(file.includes)
    result.includes = sorted(includes)
    if options.master_include:
        result.includes.append(options.master_include)
    return result


def sort_hierarchy(files: Sequence[DependencyFile]) -> list[DependencyFile]:
    """Order files so each comes after its dependencies, ties by name."""
    placed: set[str] = set()
    result = []
    remaining = list(files)
    while remaining:
        ready = sorted((file for file in remaining if file.deps <= placed), key=lambda file: file.name)
        if not ready:
            raise DependencyCycle([file.name for file in remaining])
        result.extend(ready)
        placed.update(file.name for file in ready)
        remaining = [file for file in remaining if file.name not in placed]
    return result


def _directive_end(lines: Sequence[str]) -> int:
    """Index of the last line of the directive starting lines, following continuations."""
    index = 0
    while index + 1 < len(lines) and lines[index].rstrip().endswith("\\"):
        index += 1
    return index


def _block(lines: Sequence[str]) -> str:
    return "\n".join(lines).strip()


def render_amalgamation(result: Amalgamation, options: AmalgamateOptions | None = None) -> str:
    options = options or AmalgamateOptions()
    files = [file for file in sort_hierarchy(result.files) if file.content]

    out = [f"// {options.title}", f"#ifndef {options.guard}", f"#define {options.guard}", ""]
    if result.includes:
        out += [f"#include <{name}>" for name in result.includes] + [""]

    out += [f"namespace {options.namespace} {{", ""]
    for file in files:
        if not file.conditional:
            out += [_block(file.content), ""]
    out += [f"}} // namespace {options.namespace}", ""]

    for file in files:
        if file.conditional:
            # System includes go right after the file's own condition
            content = list(file.content)
            after = _directive_end(content) + 1
            content[after:after] = [f"#include <{name}>" for name in file.includes]
            out += [_block(content), ""]

    out.append(f"#endif // {options.guard}")
    return "\n".join(out) + "\n"


def write_amalgamation(result: Amalgamation, stream: TextIO, options: AmalgamateOptions | None = None) -> None:
    stream.write(render_amalgamation(result, options))


def directory_resolver(base_dir: Path) -> Resolver:
    """Resolve include names against a directory."""

    def resolve(name: str) -> list[str]:
        return (Path(base_dir) / name).read_text().splitlines()

    return resolve
