from datetime import datetime, timezone
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

IN_PROGRESS = "⏳ Processing..."


def success_marker(title: str) -> str:
    return f"✅ {title}"


def failure_marker(error: Any) -> str:
    return f"❌ {error}"


def cell_id(sheet: Optional[str], row: int, column: int) -> str:
    return f"{sheet or 'Sheet1'}!R{row}C{column}"


class NullStatus:
    """Status surface for triggers that have nowhere to show progress."""

    def set(self, text: str) -> None:
        return None


class DynamoStatusCell:
    def __init__(self, table: Any, cell: str) -> None:
        self.table = table
        self.cell = cell

    def set(self, text: str) -> None:
        # put_item returns only after the write is durable, so observers see it immediately.
        self.table.put_item(
            Item={
                "cell": self.cell,
                "value": text,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        )


def write_status(status: Any, text: str) -> None:
    try:
        status.set(text)
    except (BotoCoreError, ClientError) as exc:
        print(f"Failed to write status {text!r}: {exc}")
