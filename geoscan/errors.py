"""Error types raised by the GEOSCAN model layer.

Each error also derives from the builtin exception callers would naturally
catch (``ValueError`` for bad input, ``FileNotFoundError``/``FileExistsError``
for storage problems), so existing ``except`` clauses keep working.
"""


class GeoscanError(Exception):
    """Base class for all GEOSCAN errors."""


class ConfigurationError(GeoscanError, ValueError):
    """Model or serving configuration cannot be used (e.g. no precision for epsilon)."""


class SchemaError(GeoscanError, ValueError):
    """Input records do not match the columns the model expects."""


class AmbiguousTileError(GeoscanError, ValueError):
    """A cell maps to several clusters and the tie-break policy rejects it."""

    def __init__(self, cells):
        self.cells = list(cells)
        preview = ", ".join(self.cells[:5])
        more = f" (+{len(self.cells) - 5} more)" if len(self.cells) > 5 else ""
        super().__init__(
            f"{len(self.cells)} cell(s) belong to more than one cluster: {preview}{more}"
        )


class CorruptDataError(GeoscanError, ValueError):
    """A persisted artifact exists but its content cannot be decoded."""


class ModelNotFoundError(GeoscanError, FileNotFoundError):
    """A persisted model or one of its artifacts is missing."""


class ModelExistsError(GeoscanError, FileExistsError):
    """The save target already exists and overwrite was not requested."""
