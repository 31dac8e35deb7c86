"""treedoc package root."""

from treedoc.exceptions import (
    CommandFailed,
    MalformedConfig,
    MultiplePathsUnsupported,
    MultipleSelectors,
    TreedocError,
    UnterminatedBlock,
    UnterminatedQuote,
)

__all__ = [
    "__version__",
    "CommandFailed",
    "MalformedConfig",
    "MultiplePathsUnsupported",
    "MultipleSelectors",
    "TreedocError",
    "UnterminatedBlock",
    "UnterminatedQuote",
]

__version__ = "0.1.0"
