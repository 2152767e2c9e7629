"""Submission proxy endpoint.

Accepts the chat UI's multipart submission, forwards it to the analysis
backend and relays the backend's JSON reply or a structured error.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from datachat.client.backend import BackendClient, BackendUnavailable
from datachat.models.schemas import Attachment, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["process"])


def get_backend_client(request: Request) -> BackendClient:
    """Return the backend client created in the application lifespan."""
    return request.app.state.backend


def _error(status_code: int, detail: str, error: str | None = None) -> JSONResponse:
    body = ErrorResponse(detail=detail, error=error)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)


async def _read_attachments(files: list[UploadFile] | None) -> list[Attachment]:
    attachments: list[Attachment] = []
    for upload in files or []:
        attachments.append(
            Attachment(
                name=upload.filename or "upload",
                content=await upload.read(),
                content_type=upload.content_type or "application/octet-stream",
            )
        )
    return attachments


@router.post("/process")
async def process(
    backend: Annotated[BackendClient, Depends(get_backend_client)],
    prompt: Annotated[str | None, Form()] = None,
    session_id: Annotated[str | None, Form()] = None,
    files: Annotated[list[UploadFile] | None, File()] = None,
) -> JSONResponse:
    """Forward a prompt and its files to the analysis backend.

    Args:
        backend: Client for the analysis backend.
        prompt: The user's question (required).
        session_id: Existing session for follow-up questions.
        files: Data files to analyse.

    Returns:
        The backend's JSON body, which carries ``session_id``.

    Raises:
        400: Prompt is missing.
        4xx/5xx: Backend error, relayed with ``detail`` and ``error``.
        502: Backend unreachable.
        500: Unexpected failure.
    """
    if not prompt or not prompt.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Prompt is missing",
        )

    try:
        attachments = await _read_attachments(files)
        response = await backend.post_submission(prompt, attachments, session_id or None)
    except BackendUnavailable as e:
        logger.error(f"Backend unreachable: {e}")
        return _error(status.HTTP_502_BAD_GATEWAY, "Backend unavailable", str(e))
    except Exception as e:
        logger.exception("Error in /api/process")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", str(e))

    if response.is_error:
        logger.error(f"Backend error ({response.status_code}): {response.text}")
        return _error(response.status_code, "Backend server error", response.text)

    try:
        payload = response.json()
    except ValueError as e:
        logger.error(f"Backend returned invalid JSON: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", str(e))

    logger.info(
        f"Forwarded submission with {len(attachments)} file(s), "
        f"session={payload.get('session_id') if isinstance(payload, dict) else None}"
    )
    return JSONResponse(payload, status_code=status.HTTP_200_OK)
