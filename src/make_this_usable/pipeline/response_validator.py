import json
import logging

import pydantic

from make_this_usable.api.schemas import TransformResponse
from make_this_usable.errors import MalformedModelOutputError, UnexpectedSchemaError

logger = logging.getLogger(__name__)
RAW_LOG_LIMIT = 300


def parse_model_output(raw: str | None) -> TransformResponse:
    """Parse untrusted model text into a TransformResponse, rejecting any mismatch."""
    if raw is None or not raw.strip():
        raise MalformedModelOutputError()
    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        logger.warning("model_output.invalid_json head=%s", raw[:RAW_LOG_LIMIT])
        raise MalformedModelOutputError() from exc

    try:
        return TransformResponse.model_validate(parsed)
    except pydantic.ValidationError as exc:
        logger.warning(
            "model_output.schema_mismatch errors=%d locs=%s",
            exc.error_count(),
            [".".join(str(part) for part in err["loc"]) for err in exc.errors()[:5]],
        )
        raise UnexpectedSchemaError() from exc


def sanitize(document: TransformResponse) -> TransformResponse:
    """Drop next_actions entries with an empty action or first_step, keeping order."""
    kept = [item for item in document.next_actions if item.action.strip() and item.first_step.strip()]
    if len(kept) == len(document.next_actions):
        return document
    logger.info("sanitize.dropped next_actions=%d", len(document.next_actions) - len(kept))
    return document.model_copy(update={"next_actions": kept})
