#!/usr/bin/env python3

import pytest

from apiport.config import ApiTransform, EntryPatch, FileTransform, IncludeAt, ReplacementRule, TypeDeclaration
from apiport.errors import ConfigurationMismatch
from apiport.models import Api, Entry, EntryKind, Parameter
from apiport.parse import parse_content
from apiport.transform import TransformContext, default_name, target_file_name, transform_api, transform_entry

VIDEO_H = """\
/**
 * Video functions
 */
#pragma once

typedef struct SDL_Window SDL_Window;

typedef Uint32 SDL_WindowID;

/**
 * Creates a window, see \\ref SDL_DestroyWindow
 */
SDL_Window *SDL_CreateWindow(const char *title, SDL_WindowID id);

void SDL_DestroyWindow(SDL_Window *window);

SDL_WindowID SDL_GetWindowID(SDL_Window *window);
"""


def make_api(name: str, content: str) -> Api:
    api = Api()
    api.files[name] = parse_content(name, content)
    return api


@pytest.fixture
def video_api():
    return make_api("SDL_video.h", VIDEO_H)


@pytest.fixture
def video_config():
    return ApiTransform(
        prefixes=["SDL_"],
        files={"SDL_video.h": FileTransform(types={"SDL_Window": "resource"})},
    )


class TestNames:
    def test_prefix_and_rename_rules(self):
        config = ApiTransform(prefixes=["SDL_"], rename_rules=[ReplacementRule(pattern="^Get", replacement="Fetch")])

        assert default_name("SDL_GetError", config) == "FetchError"
        assert default_name("Uint8", config) == "Uint8"

    def test_target_file_name(self):
        config = ApiTransform(prefixes=["SDL_"])

        assert target_file_name("SDL_video.h", config) == "video.hpp"


class TestTypeMaps:
    def test_alias_propagates_to_qualified_forms(self):
        context = TransformContext()
        context.register_alias("Foo", "Bar")
        entry = Entry(
            name="make",
            kind=EntryKind.FUNCTION,
            type="Foo *",
            parameters=[Parameter(name="src", type="const Foo *")],
        )

        result = transform_entry(entry, context, FileTransform(), ApiTransform())

        assert result.type == "Bar *"
        assert result.parameters == [Parameter(name="src", type="const Bar *")]

    def test_specific_maps_win_over_shared(self):
        context = TransformContext(
            type_map={"const char *": "const char *"},
            param_type_map={"const char *": "StringParam"},
        )

        assert context.map_param_type("const char *") == "StringParam"
        assert context.map_return_type("const char *") == "const char *"
        assert context.map_type("int") == "int"

    def test_copy_is_independent(self):
        context = TransformContext()
        context.register_alias("A", "B")
        copy = context.copy()
        copy.register_alias("C", "D")

        assert "C" not in context.type_map
        assert copy.type_map["A"] == "B"


class TestTransform:
    def test_resource_reclassification(self, video_api, video_config):
        api, warnings = transform_api(video_api, video_config)

        assert warnings == []
        target = api.files["video.hpp"]
        base = target.entries["WindowBase"]
        assert base.kind == EntryKind.STRUCT
        assert base.template == [Parameter(name="T", type="class")]
        assert base.type == "T"
        assert base.parameters == ["using T::T;"]
        assert base.source_name == "SDL_Window"

        create = target.entries["CreateWindow"]
        assert create.type == "Window"
        assert create.parameters == [
            Parameter(name="title", type="const char *"),
            Parameter(name="id", type="WindowID"),
        ]
        destroy = target.entries["DestroyWindow"]
        assert destroy.parameters == [Parameter(name="window", type="WindowRef")]
        assert target.entries["GetWindowID"].type == "WindowID"

    def test_plain_alias(self, video_api, video_config):
        api, _ = transform_api(video_api, video_config)

        alias = api.files["video.hpp"].entries["WindowID"]
        assert alias.kind == EntryKind.ALIAS
        assert alias.type == "SDL_WindowID"

    def test_file_doc_and_doc_rules(self, video_api, video_config):
        api, _ = transform_api(video_api, video_config)

        target = api.files["video.hpp"]
        assert target.doc == "@file video.hpp\n\nVideo functions"
        assert target.entries["CreateWindow"].doc == "Creates a window, see @ref SDL_DestroyWindow"

    def test_records_collapse_to_aliases(self):
        api = make_api(
            "SDL_rect.h",
            "typedef struct SDL_Point\n{\n  int x;\n  int y;\n} SDL_Point;\n\nvoid SDL_Use(const SDL_Point *p);\n",
        )

        result, _ = transform_api(api, ApiTransform(prefixes=["SDL_"]))

        point = result.files["rect.hpp"].entries["Point"]
        assert point.kind == EntryKind.ALIAS
        assert point.type == "SDL_Point"
        assert point.entries is None
        assert result.files["rect.hpp"].entries["Use"].parameters == [Parameter(name="p", type="const Point *")]

    def test_alias_to_itself_is_dropped(self):
        api = make_api("types.h", "typedef int Foo;\nint bar;\n")

        result, _ = transform_api(api, ApiTransform())

        assert list(result.files["types.hpp"].entries) == ["bar"]

    def test_overloads_share_default_name(self):
        api = make_api("SDL_f.h", "void SDL_F(int a);\nvoid SDL_F(float a);\n")

        result, _ = transform_api(api, ApiTransform(prefixes=["SDL_"]))

        overloads = result.files["f.hpp"].entries["F"]
        assert [o.name for o in overloads] == ["F", "F"]
        assert [o.parameters[0].type for o in overloads] == ["int", "float"]

    def test_defines_need_whitelist(self):
        api = make_api("SDL_defs.h", "#define SDL_FOO 1\n#define SDL_BAR 2\n")
        config = ApiTransform(prefixes=["SDL_"], files={"SDL_defs.h": FileTransform(include_defs=["SDL_FOO"])})

        result, _ = transform_api(api, config)

        entries = result.files["defs.hpp"].entries
        assert list(entries) == ["FOO"]
        assert entries["FOO"].value == "1"

    def test_ignored_entries(self, video_api, video_config):
        video_config.files["SDL_video.h"].ignore_entries = ["SDL_DestroyWindow"]

        api, _ = transform_api(video_api, video_config)

        assert "DestroyWindow" not in api.files["video.hpp"].entries

    def test_override_gets_computed_name(self, video_api, video_config):
        patch = EntryPatch(doc="Destroys a window")
        video_config.files["SDL_video.h"].transform = {"DestroyWindow": patch}

        api, _ = transform_api(video_api, video_config)

        assert api.files["video.hpp"].entries["DestroyWindow"].doc == "Destroys a window"
        assert patch.name == "DestroyWindow"

    def test_override_can_rename(self, video_api, video_config):
        video_config.files["SDL_video.h"].transform = {"GetWindowID": EntryPatch(name="GetID", immutable=True)}

        api, _ = transform_api(video_api, video_config)

        entry = api.files["video.hpp"].entries["GetID"]
        assert entry.immutable
        assert entry.source_name == "SDL_GetWindowID"

    def test_fixed_entries_come_first(self, video_api, video_config):
        video_config.files["SDL_video.h"].include_at = IncludeAt(
            begin=[
                Entry(name="Fixed", kind=EntryKind.ALIAS, type="int"),
                Entry(name="WindowID", kind=EntryKind.ALIAS, type="Uint32"),
            ]
        )

        api, _ = transform_api(video_api, video_config)

        entries = api.files["video.hpp"].entries
        assert list(entries)[:2] == ["Fixed", "WindowID"]
        assert entries["WindowID"].type == "Uint32"

    def test_only_named_files(self, video_api, video_config):
        video_api.files["other.h"] = parse_content("other.h", "int x;\n")

        api, _ = transform_api(video_api, video_config, names=["other.h"])

        assert list(api.files) == ["other.hpp"]


class TestMismatches:
    def test_resource_on_function(self, video_api, video_config):
        video_config.files["SDL_video.h"].types["SDL_CreateWindow"] = "resource"

        api, warnings = transform_api(video_api, video_config)

        assert len(warnings) == 1
        assert isinstance(warnings[0], ConfigurationMismatch)
        assert str(warnings[0]) == "function SDL_CreateWindow can not be resource"
        assert api.files["video.hpp"].entries["CreateWindow"].kind == EntryKind.FUNCTION

    def test_non_resource_kind_on_alias(self, video_api, video_config):
        video_config.files["SDL_video.h"].types["SDL_WindowID"] = TypeDeclaration(kind="struct")

        api, warnings = transform_api(video_api, video_config)

        assert [str(w) for w in warnings] == ["alias SDL_WindowID can not be struct"]
        assert api.files["video.hpp"].entries["WindowID"].kind == EntryKind.ALIAS


class TestIdempotence:
    def test_transforming_output_again_changes_nothing(self, video_api, video_config):
        video_config.files["SDL_video.h"].include_at = IncludeAt(
            begin=[Entry(name="Fixed", kind=EntryKind.ALIAS, type="int")]
        )
        first, _ = transform_api(video_api, video_config)
        second, warnings = transform_api(first, video_config)

        assert warnings == []
        assert second.to_record() == first.to_record()

    def test_source_api_is_not_modified(self, video_api, video_config):
        before = video_api.to_record()

        transform_api(video_api, video_config)

        assert video_api.to_record() == before
