"""Abstract base class for text-edit refactors."""

from typing import List, Sequence

from ..patch import EditBuffer
from ..stats import RunStats
from ..syntax import SourceFile


class Refactor:
    """Base class for all clextract refactors.

    A refactor reads the syntax tree and the original source text, and
    expresses its result purely as edits queued on a shared
    :class:`EditBuffer`.  It never writes files itself; the engine flushes
    the buffer once at the end of the run.
    """

    def __init__(
        self, source: SourceFile, buffer: EditBuffer, verbose: bool = True
    ) -> None:
        self.source = source
        self.buffer = buffer
        self.verbose = verbose
        self.changes_made: List[str] = []
        self.stats: RunStats = RunStats()

    @classmethod
    def name(cls) -> str:
        return cls.__name__

    def run(self) -> None:
        raise NotImplementedError

    def get_changes(self) -> Sequence[str]:
        return self.changes_made
