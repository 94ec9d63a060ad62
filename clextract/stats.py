"""Cumulative statistics for a single clextract run."""

import difflib
from dataclasses import dataclass, field
from typing import List


@dataclass
class RunStats:
    """Holds cumulative counts for a single clextract run."""

    # Extraction counts
    functions_extracted: int = 0
    files_skipped: int = 0

    # Parameter threading
    parameters: int = 0
    member_parameters: int = 0
    uses_renamed: int = 0

    # File and line tracking
    files_edited: List[str] = field(default_factory=list)
    lines_changed: int = 0

    def merge(self, other: "RunStats") -> None:
        """Add all counters from *other* into self (files_edited is not merged)."""
        self.functions_extracted += other.functions_extracted
        self.files_skipped += other.files_skipped
        self.parameters += other.parameters
        self.member_parameters += other.member_parameters
        self.uses_renamed += other.uses_renamed

    @property
    def plain_parameters(self) -> int:
        return self.parameters - self.member_parameters

    def count_lines_changed(self, original: str, new: str) -> None:
        """Add the number of added/removed lines between *original* and *new*."""
        orig_lines = original.splitlines()
        new_lines = new.splitlines()
        diff = difflib.unified_diff(orig_lines, new_lines)
        for line in diff:
            if line.startswith(("+", "-")) and not line.startswith(("+++", "---")):
                self.lines_changed += 1

    def format_summary(self) -> List[str]:
        """Return a list of lines forming the human-readable run summary."""
        lines = ["--- clextract summary ---"]
        lines.append("extractions:")
        lines.append(f"  functions extracted: {self.functions_extracted}")
        lines.append(f"  files skipped:       {self.files_skipped}")
        lines.append("parameters:")
        lines.append(f"  plain:               {self.plain_parameters}")
        lines.append(f"  member:              {self.member_parameters}")
        lines.append(f"  total:               {self.parameters}")
        lines.append(f"uses renamed: {self.uses_renamed}")
        if self.files_edited:
            flist = ", ".join(self.files_edited)
            lines.append(f"files edited ({len(self.files_edited)}): {flist}")
        else:
            lines.append("files edited: none")
        lines.append(f"lines changed: {self.lines_changed}")
        return lines
