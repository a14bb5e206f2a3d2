"""Extract C header APIs, rewrite them and merge the results into one header."""

from apiport.amalgamate import collect_files, directory_resolver, render_amalgamation, sort_hierarchy
from apiport.config import AmalgamateOptions, ApiTransform, FileTransform, GenerateOptions, ParseOptions
from apiport.errors import (
    ApiportError,
    ConfigurationMismatch,
    DependencyCycle,
    MalformedSource,
    MissingClosingMarker,
    UnknownEntryKind,
)
from apiport.generate import generate_api, generate_file
from apiport.models import Api, ApiFile, Entry, EntryKind, Parameter, Token, TokenKind
from apiport.parse import parse_api, parse_content, parse_tokens
from apiport.tokenize import tokenize
from apiport.transform import TransformContext, transform_api

__all__ = [
    "AmalgamateOptions",
    "Api",
    "ApiFile",
    "ApiTransform",
    "ApiportError",
    "ConfigurationMismatch",
    "DependencyCycle",
    "Entry",
    "EntryKind",
    "FileTransform",
    "GenerateOptions",
    "MalformedSource",
    "MissingClosingMarker",
    "Parameter",
    "ParseOptions",
    "Token",
    "TokenKind",
    "TransformContext",
    "UnknownEntryKind",
    "collect_files",
    "directory_resolver",
    "generate_api",
    "generate_file",
    "parse_api",
    "parse_content",
    "parse_tokens",
    "render_amalgamation",
    "sort_hierarchy",
    "tokenize",
    "transform_api",
]
