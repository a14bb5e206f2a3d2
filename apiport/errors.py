#!/usr/bin/env python3


class ApiportError(Exception):
    """Base class for pipeline errors."""


class MalformedSource(ApiportError):
    """The tokenizer could not find an expected terminator."""

    message: str
    line: int

    def __init__(self, message: str, line: int):
        self.message = message
        self.line = line
        super().__init__(message)

    def __str__(self):
        return f"Malformed source at line {self.line}: {self.message}"


class UnknownEntryKind(ApiportError):
    """A token the model builder can not turn into an entry."""

    kind: str
    line: int

    def __init__(self, kind: str, line: int, detail: str = ""):
        self.kind = kind
        self.line = line
        self.detail = detail
        super().__init__(kind)

    def __str__(self):
        suffix = f": {self.detail}" if self.detail else ""
        return f"Unexpected {self.kind} at line {self.line}{suffix}"


class ConfigurationMismatch(ApiportError):
    """A configured type rule does not fit the entry it targets.

    Recorded by the transform as a warning and never raised there.
    """

    def __init__(self, name: str, declared: str, detected: str):
        self.name = name
        self.declared = declared
        self.detected = detected
        super().__init__(name)

    def __str__(self):
        return f"{self.detected} {self.name} can not be {self.declared}"


class DependencyCycle(ApiportError):
    """Amalgamation ordering can not make progress."""

    files: list[str]

    def __init__(self, files: list[str]):
        self.files = sorted(files)
        super().__init__(", ".join(self.files))

    def __str__(self):
        return f"Dependency cycle between: {', '.join(self.files)}"


class MissingClosingMarker(ApiportError):
    """A file's content block is never closed."""

    def __init__(self, file: str, marker: str):
        self.file = file
        self.marker = marker
        super().__init__(file)

    def __str__(self):
        return f'Expected "{self.marker}" at file {self.file}'
