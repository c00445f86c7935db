"""Commit message and pull request body for source updates."""

from __future__ import annotations

from .sources import UpdateSummary

TAG = "lon"


class CommitMessage:
    """Accumulates update summaries in processing order and renders them.

    With a single update the title names the source:

        lon: update nixpkgs

          <old revision>
        → <new revision>

    With several updates every source gets its own "• name:" block.
    """

    def __init__(self) -> None:
        self.updates: list[tuple[str, UpdateSummary]] = []

    def add_summary(self, name: str, summary: UpdateSummary) -> None:
        self.updates.append((name, summary))

    def is_empty(self) -> bool:
        return not self.updates

    def title(self) -> str:
        if len(self.updates) == 1:
            return f"{TAG}: update {self.updates[0][0]}"
        return f"{TAG}: update"

    def body(self) -> str:
        """Body of the commit message, also used as pull request description."""
        lines: list[str] = []

        if len(self.updates) == 1:
            summary = self.updates[0][1]
            lines += ["", f"  {summary.old_revision}", f"→ {summary.new_revision}"]
            if summary.rev_list is not None:
                lines += ["", *_rev_list_overview(summary, indent=0)]
        else:
            for name, summary in self.updates:
                lines += ["", f"• {name}:", f"    {summary.old_revision}", f"  → {summary.new_revision}"]
                if summary.rev_list is not None:
                    lines += ["", *_rev_list_overview(summary, indent=2)]

        return "".join(f"{line}\n" for line in lines)

    def __str__(self) -> str:
        return f"{self.title()}\n{self.body()}"


def _rev_list_overview(summary: UpdateSummary, indent: int) -> list[str]:
    prefix = " " * indent
    commits = list(summary.rev_list or ())
    return [f"{prefix}Last {len(commits)} commits:"] + [
        f"{prefix}  {commit.revision.short()} {commit.message_summary()}" for commit in commits
    ]
