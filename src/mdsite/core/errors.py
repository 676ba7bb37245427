"""Build error taxonomy: per-document parse/render failures and fatal write failures"""


class BuildError(Exception):
    """Base class for every error the site build reports."""

    def __init__(self, message: str, source_path: str = None):
        super().__init__(message)
        self.message = message
        self.source_path = source_path

    @property
    def kind(self) -> str:
        return type(self).__name__


class ParseError(BuildError):
    """A content file could not be turned into a Document."""


class MissingField(ParseError):
    def __init__(self, key: str, source_path: str = None):
        super().__init__(f"missing required field '{key}'", source_path)
        self.key = key


class MalformedHeader(ParseError):
    def __init__(self, reason: str, source_path: str = None):
        super().__init__(f"malformed front matter: {reason}", source_path)
        self.reason = reason


class DuplicateId(ParseError):
    def __init__(self, doc_id: str, source_path: str = None, existing_path: str = None):
        msg = f"duplicate id '{doc_id}'"
        if existing_path:
            msg += f" (already defined by {existing_path})"
        super().__init__(msg, source_path)
        self.doc_id = doc_id
        self.existing_path = existing_path


class RenderError(BuildError):
    """A parsed Document could not be rendered to HTML."""


class UnknownLayout(RenderError):
    def __init__(self, name: str, source_path: str = None):
        super().__init__(f"unknown layout '{name}'", source_path)
        self.name = name


class TemplateBindingFailed(RenderError):
    pass


class LayoutNestingTooDeep(RenderError):
    def __init__(self, chain: list[str], source_path: str = None):
        super().__init__(
            f"layout chain {' -> '.join(chain)} is too deep; only one level of wrapping is supported",
            source_path,
        )
        self.chain = chain


class WriteError(BuildError):
    """The output target is unusable; fatal to the whole build."""


class ContentModelFrozen(RuntimeError):
    """Raised when a document is added after the build barrier."""
