from typing import Any, Dict

import boto3

from ..errors import ConfigurationError
from ..pipeline import build_publisher
from ..settings import AWS_CLIENT_CONFIG, Settings
from ..source_store import S3Folder
from ..sweep import FolderSweep


def handler(_event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}")
        return {"status": "misconfigured"}
    missing = settings.missing_for_publishing()
    if not settings.folder_uri or not settings.processed_folder_uri:
        missing.append("FOLDER_ID/PROCESSED_FOLDER_ID")
    if missing:
        print(f"Missing required configuration: {', '.join(missing)}")
        return {"status": "misconfigured"}

    s3 = boto3.client("s3", config=AWS_CLIENT_CONFIG)
    try:
        folder = S3Folder(s3, settings.folder_uri)
        processed = S3Folder(s3, settings.processed_folder_uri)
    except ConfigurationError as exc:
        print(f"Invalid folder configuration: {exc}")
        return {"status": "misconfigured"}

    sweep = FolderSweep(
        build_publisher(settings),
        folder,
        processed,
        budget_seconds=settings.sweep_budget_seconds,
        max_files=settings.sweep_max_files,
    )
    summary = sweep.run(context)
    print(f"Sweep finished: {len(summary.published)} published, {len(summary.failed)} failed")
    return {"status": "ok", **summary.to_payload()}
