from typing import Any, Optional

import boto3

from ..settings import AWS_CLIENT_CONFIG, Settings
from ..status import DynamoStatusCell, NullStatus, cell_id


def status_surface(settings: Settings, sheet: Optional[str], row: Optional[int], column: int) -> Any:
    if not settings.status_table or not row:
        return NullStatus()
    table = boto3.resource("dynamodb", config=AWS_CLIENT_CONFIG).Table(settings.status_table)
    return DynamoStatusCell(table, cell_id(sheet, row, column))
