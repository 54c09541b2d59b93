from typing import Any, Dict

from ..errors import ConfigurationError
from ..models import FormEvent
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

    form_event = FormEvent.from_payload(body)
    print(f"Form submission received (row={form_event.row})")
    status = status_surface(settings, form_event.sheet, form_event.row, settings.publish_column)
    outcome = build_publisher(settings).submit(form_event, status)
    return json_response(200, outcome.to_payload())
