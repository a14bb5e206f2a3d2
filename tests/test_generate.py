#!/usr/bin/env python3

import tempfile
from pathlib import Path

import pytest

from apiport.amalgamate import parse_dependency_file
from apiport.config import GenerateOptions
from apiport.generate import declare, generate_file, header_guard, render_entry, write_api
from apiport.models import Api, ApiFile, Entry, EntryKind, Parameter


@pytest.fixture
def video_file():
    return ApiFile(
        name="video.hpp",
        doc="@file video.hpp\n\nVideo functions",
        includes=["SDL3/SDL_video.h", "cstdint"],
        local_includes=["rect.hpp"],
        entries={
            "WindowID": Entry(name="WindowID", kind=EntryKind.ALIAS, type="SDL_WindowID"),
            "CreateWindow": Entry(
                name="CreateWindow",
                kind=EntryKind.FUNCTION,
                doc="Creates a window",
                type="Window",
                parameters=[Parameter(name="title", type="const char *"), Parameter(name="id", type="WindowID")],
            ),
        },
    )


class TestDeclarations:
    def test_header_guard(self):
        assert header_guard("video.hpp", GenerateOptions()) == "SDL3PP_VIDEO_H_"
        assert header_guard("my-file.hpp", GenerateOptions(guard_prefix="X_")) == "X_MY_FILE_H_"

    def test_declare(self):
        assert declare("const char *", "title") == "const char *title"
        assert declare("int", "a") == "int a"
        assert declare("int[4]", "a") == "int a[4]"
        assert declare(None, "Window()") == "Window()"


class TestEntries:
    def test_function(self):
        entry = Entry(
            name="CreateWindow",
            kind=EntryKind.FUNCTION,
            doc="Creates a window",
            type="Window",
            parameters=[Parameter(name="title", type="const char *"), Parameter(name="flags", type="int", default="0")],
        )

        assert render_entry(entry) == [
            "/**",
            " * Creates a window",
            " */",
            "Window CreateWindow(const char *title, int flags = 0);",
        ]

    def test_const_member_function(self):
        entry = Entry(name="GetID", kind=EntryKind.FUNCTION, type="WindowID", parameters=[], immutable=True)

        assert render_entry(entry, "  ") == ["  WindowID GetID() const;"]

    def test_resource_base(self):
        entry = Entry(
            name="WindowBase",
            kind=EntryKind.STRUCT,
            type="T",
            template=[Parameter(name="T", type="class")],
            parameters=["using T::T;"],
        )

        assert render_entry(entry) == [
            "template<class T>",
            "struct WindowBase : T",
            "{",
            "  using T::T;",
            "};",
        ]

    def test_aliases(self):
        assert render_entry(Entry(name="WindowID", kind=EntryKind.ALIAS, type="SDL_WindowID")) == [
            "using WindowID = SDL_WindowID;"
        ]
        assert render_entry(Entry(name="Point", kind=EntryKind.ALIAS, type="Point")) == ["using Point = ::Point;"]

    def test_var_and_def(self):
        var = Entry(name="MAX", kind=EntryKind.VAR, type="int", constexpr=True, value="8")
        define = Entry(name="SDL_MIN", kind=EntryKind.DEF, parameters=[Parameter(name="a")], value="(a)")

        assert render_entry(var) == ["constexpr int MAX = 8;"]
        assert render_entry(define) == ["#define SDL_MIN(a) (a)"]

    def test_enum(self):
        entry = Entry(
            name="Color",
            kind=EntryKind.ENUM,
            entries={
                "RED": Entry(name="RED", kind=EntryKind.VAR, doc="red"),
                "GREEN": Entry(name="GREEN", kind=EntryKind.VAR, value="2"),
            },
        )

        assert render_entry(entry) == [
            "enum Color",
            "{",
            "  /**",
            "   * red",
            "   */",
            "  RED,",
            "  GREEN = 2,",
            "};",
        ]

    def test_forward(self):
        assert render_entry(Entry(name="Window", kind=EntryKind.FORWARD)) == ["// Forward decl", "struct Window;"]


class TestFiles:
    def test_layout(self, video_file):
        lines = generate_file(video_file)

        assert lines[:3] == ["#ifndef SDL3PP_VIDEO_H_", "#define SDL3PP_VIDEO_H_", ""]
        assert lines[3:6] == ["#include <SDL3/SDL_video.h>", "#include <cstdint>", '#include "rect.hpp"']
        assert "namespace SDL {" in lines
        assert "using WindowID = SDL_WindowID;" in lines
        assert lines[-3:] == ["} // namespace SDL", "", "#endif /* SDL3PP_VIDEO_H_ */"]

    def test_custom_namespace(self, video_file):
        lines = generate_file(video_file, GenerateOptions(namespace="Game"))

        assert "namespace Game {" in lines
        assert "} // namespace Game" in lines

    def test_output_feeds_amalgamation(self, video_file):
        dependency = parse_dependency_file("video.hpp", generate_file(video_file))

        assert dependency.deps == {"rect.hpp"}
        assert dependency.includes == ["cstdint"]
        assert not dependency.conditional
        assert "Window CreateWindow(const char *title, WindowID id);" in dependency.content

    def test_write_api(self, video_file):
        api = Api(files={"video.hpp": video_file})
        with tempfile.TemporaryDirectory() as temp_dir:
            written = write_api(api, Path(temp_dir) / "out")

            assert [path.name for path in written] == ["video.hpp"]
            text = written[0].read_text()
            assert text.startswith("#ifndef SDL3PP_VIDEO_H_\n")
            assert text.endswith("#endif /* SDL3PP_VIDEO_H_ */\n")
