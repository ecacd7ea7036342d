"""
Remote import job invocation.

Posts a process-import request to the job endpoint, authenticated with the
shared webhook secret. Called from a background task once the batch and the
stored file exist.
"""

from typing import Any

import requests
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class JobInvocationError(Exception):
    """Job endpoint unreachable or refused the request."""
    pass


def build_process_import_payload(
    batch_id: str,
    dataset_type: str,
    file_path: str,
    mapping: dict[str, str],
) -> dict[str, Any]:
    """Request body understood by the process-import endpoint."""
    return {
        "batch_id": batch_id,
        "dataset_type": dataset_type,
        "file_path": file_path,
        "mapping": mapping,
    }


def invoke_process_import(payload: dict[str, Any]) -> dict:
    """
    Call the process-import job.

    Args:
        payload: Body built by build_process_import_payload

    Returns:
        Parsed JSON response of the job

    Raises:
        JobInvocationError: If the secret is missing or the call is refused.
            A slow reply is not a failure: the job is already running.
    """
    if not settings.webhook_configured:
        logger.error("process_import_not_configured", batch_id=payload.get("batch_id"))
        raise JobInvocationError("EDGE_WEBHOOK_SECRET is not configured")

    headers = {"Authorization": f"Bearer {settings.edge_webhook_secret}"}

    try:
        logger.info(
            "invoking_process_import",
            batch_id=payload.get("batch_id"),
            url=settings.process_import_url,
        )

        response = requests.post(
            settings.process_import_url,
            json=payload,
            headers=headers,
            timeout=settings.process_import_timeout,
        )
        response.raise_for_status()

        result = response.json() if response.content else {}
        logger.info("process_import_invoked", batch_id=payload.get("batch_id"), status_code=response.status_code)
        return result

    except requests.exceptions.ReadTimeout:
        # Request was delivered; the job records its own outcome on the batch
        logger.warning(
            "process_import_response_slow",
            batch_id=payload.get("batch_id"),
            timeout=settings.process_import_timeout,
        )
        return {}

    except requests.exceptions.RequestException as e:
        logger.error("process_import_invocation_failed", batch_id=payload.get("batch_id"), error=str(e))
        raise JobInvocationError(f"Failed to invoke process-import: {str(e)}")
