from typing import Any, Dict

from ..errors import ConfigurationError
from ..models import SheetEditEvent
from ..pipeline import build_publisher
from ..settings import Settings
from .responses import json_response, parse_body
from .status_surface import status_surface


def handler(event: Dict[str, Any], _context: Any) -> Dict[str, Any]:
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        return json_response(500, {"message": str(exc)})
    missing = settings.missing_for_publishing()
    if missing:
        return json_response(500, {"message": f"Missing required configuration: {', '.join(missing)}"})

    body, error = parse_body(event)
    if error is not None:
        return error

    edit = SheetEditEvent.from_payload(body)
    # The edited checkbox cell doubles as the status cell.
    status = status_surface(settings, edit.sheet, edit.row, edit.column)
    outcome = build_publisher(settings).submit(edit, status)
    return json_response(200, outcome.to_payload())
