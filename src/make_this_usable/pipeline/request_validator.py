import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pydantic
from starlette.datastructures import UploadFile
from starlette.requests import Request

from make_this_usable.api.schemas import TransformRequestBody
from make_this_usable.config import Settings
from make_this_usable.errors import (
    FileTooLargeError,
    MissingFileError,
    PayloadTooLargeError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextPayload:
    text: str
    notes: str | None = None


@dataclass(frozen=True)
class FilePayload:
    filename: str
    content_type: str
    data: bytes
    notes: str | None = None


TransformPayload = TextPayload | FilePayload


async def read_transform_request(request: Request, settings: Settings) -> TransformPayload:
    """Decode the inbound request once into a text or file payload."""
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("multipart/form-data"):
        try:
            form = await request.form()
        except Exception as exc:
            raise ValidationError("Invalid multipart form") from exc
        return await validate_multipart_form(form, settings)
    return validate_json_body(await request.body(), settings)


def validate_json_body(raw: bytes | str, settings: Settings) -> TextPayload:
    try:
        body = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid request body") from exc

    text = body.get("text") if isinstance(body, dict) else None
    if isinstance(text, str) and len(text) > settings.max_input_chars:
        raise PayloadTooLargeError(
            f"Input text is too large. Maximum is {settings.max_input_chars:,} characters "
            f"(got {len(text):,})."
        )

    try:
        parsed = TransformRequestBody.model_validate(body)
    except pydantic.ValidationError as exc:
        logger.info("request.invalid errors=%d", exc.error_count())
        raise ValidationError("Invalid request format") from exc

    return TextPayload(text=parsed.text, notes=_validate_notes(parsed.notes, settings))


async def validate_multipart_form(form: Mapping[str, Any], settings: Settings) -> FilePayload:
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise MissingFileError()

    raw_notes = form.get("notes")
    if raw_notes is not None and not isinstance(raw_notes, str):
        raise ValidationError("Notes must be a text field")
    notes = _validate_notes(raw_notes, settings)

    if upload.size is not None and upload.size > settings.max_file_bytes:
        raise FileTooLargeError(settings.max_file_bytes, upload.size)
    data = await upload.read()
    if len(data) > settings.max_file_bytes:
        raise FileTooLargeError(settings.max_file_bytes, len(data))
    if not data:
        raise ValidationError("Uploaded file is empty")

    return FilePayload(
        filename=upload.filename or "upload",
        content_type=(upload.content_type or "application/octet-stream").lower(),
        data=data,
        notes=notes,
    )


def _validate_notes(notes: str | None, settings: Settings) -> str | None:
    if notes is None or not notes.strip():
        return None
    if len(notes) > settings.max_notes_chars:
        raise ValidationError(f"Notes are too long. Maximum is {settings.max_notes_chars:,} characters.")
    return notes.strip()
