import json
from typing import Any, Dict, Optional, Tuple


def json_response(status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": "*",
            "Access-Control-Allow-Methods": "OPTIONS,POST",
        },
        "body": json.dumps(payload, ensure_ascii=False),
    }


def parse_body(event: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """Return (body, error_response) for an API Gateway proxy event."""
    body: Dict[str, Any] = {}
    raw_body = event.get("body")
    if raw_body:
        try:
            body = json.loads(raw_body)
        except json.JSONDecodeError:
            return None, json_response(400, {"message": "Invalid JSON body."})
    if not isinstance(body, dict):
        return None, json_response(400, {"message": "JSON body must be an object."})
    return body, None
