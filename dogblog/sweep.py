import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .pipeline import Publisher
from .source_store import S3Folder

# Stop starting new files this close to the Lambda deadline.
CONTEXT_SAFETY_MARGIN_SECONDS = 60.0


@dataclass
class SweepSummary:
    published: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    stopped_early: bool = False

    def to_payload(self) -> dict:
        return {
            "published": self.published,
            "failed": self.failed,
            "stopped_early": self.stopped_early,
        }


def sweep_deadline(budget_seconds: float, context: Any, now: float) -> float:
    deadline = now + budget_seconds
    remaining_ms = getattr(context, "get_remaining_time_in_millis", None)
    if callable(remaining_ms):
        deadline = min(deadline, now + remaining_ms() / 1000.0 - CONTEXT_SAFETY_MARGIN_SECONDS)
    return deadline


class FolderSweep:
    """Publish every image waiting in a folder, within a wall-clock budget.

    Published files move to the processed folder. Failed files stay where
    they are and are picked up again by the next run, as are files left over
    when the budget runs out.
    """

    def __init__(
        self,
        publisher: Publisher,
        folder: S3Folder,
        processed: S3Folder,
        budget_seconds: float = 300.0,
        max_files: int = 0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.publisher = publisher
        self.folder = folder
        self.processed = processed
        self.budget_seconds = budget_seconds
        self.max_files = max_files
        self._monotonic = monotonic

    def run(self, context: Any = None, deadline: Optional[float] = None) -> SweepSummary:
        if deadline is None:
            deadline = sweep_deadline(self.budget_seconds, context, self._monotonic())
        summary = SweepSummary()
        for entry in self.folder.list_images():
            if self._monotonic() >= deadline:
                print("Sweep budget exhausted; leaving remaining files for the next run.")
                summary.stopped_early = True
                break
            if self.max_files and len(summary.published) >= self.max_files:
                summary.stopped_early = True
                break

            print(f"Processing {entry.key}")
            outcome = self.publisher.submit(entry)
            if not outcome.published:
                print(f"Leaving {entry.key} in place: {outcome.reason}")
                summary.failed.append(entry.key)
                continue
            try:
                moved_key = self.processed.move_in(entry)
            except (BotoCoreError, ClientError) as exc:
                # The post exists; a failed move means the next sweep publishes it again.
                print(f"Published {entry.key} but failed to move it: {exc}")
                summary.failed.append(entry.key)
                continue
            print(f"Done: {entry.key} moved to {moved_key}")
            summary.published.append(entry.key)
        return summary
