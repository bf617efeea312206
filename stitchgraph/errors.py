"""Exceptions raised by the stitchgraph core."""


class StitchGraphError(Exception):
    """Base class for all stitchgraph errors."""


class EmptyPaletteError(StitchGraphError, ValueError):
    """
    Raised when thread matching has no candidates left.

    Happens when every catalog entry is in the exclusion list. Callers must
    keep at least one thread available.
    """

    def __init__(self, excluded_count: int = 0):
        self.excluded_count = excluded_count
        super().__init__(
            f"Cannot match to DMC: palette is empty after excluding "
            f"{excluded_count} thread(s)"
        )
