import csv
import io
import logging
from dataclasses import dataclass

from make_this_usable.config import Settings
from make_this_usable.errors import ValidationError
from make_this_usable.pipeline.request_validator import FilePayload

logger = logging.getLogger(__name__)

CSV_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel"}
PDF_TYPES = {"application/pdf"}


@dataclass(frozen=True)
class PreparedAttachment:
    """Either inline text for the prompt, or a file the provider has to read itself."""

    filename: str
    content_type: str
    inline_text: str | None = None
    data: bytes | None = None

    @property
    def needs_upload(self) -> bool:
        return self.inline_text is None

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")


def prepare_attachment(payload: FilePayload, settings: Settings) -> PreparedAttachment:
    name = payload.filename.lower()
    content_type = payload.content_type

    if content_type in PDF_TYPES or name.endswith(".pdf"):
        return PreparedAttachment(filename=payload.filename, content_type="application/pdf", data=payload.data)
    if content_type.startswith("image/"):
        return PreparedAttachment(filename=payload.filename, content_type=content_type, data=payload.data)

    text = _decode_text(payload)
    if content_type in CSV_TYPES or name.endswith(".csv"):
        try:
            text = render_csv_preview(text, settings.csv_preview_rows)
        except csv.Error as exc:
            raise ValidationError("Couldn't parse that CSV file.") from exc
    text = text.strip()
    if not text:
        raise ValidationError("Couldn't extract any readable text from that file.")

    if len(text) > settings.max_input_chars:
        logger.info(
            "attachment.truncated filename=%s chars=%d limit=%d",
            payload.filename,
            len(text),
            settings.max_input_chars,
        )
        text = (
            f"{text[: settings.max_input_chars]}\n\n"
            f"[truncated preview: first {settings.max_input_chars:,} characters]"
        )
    return PreparedAttachment(filename=payload.filename, content_type=content_type, inline_text=text)


def render_csv_preview(raw: str, max_rows: int) -> str:
    rows = [row for row in csv.reader(io.StringIO(raw)) if any(cell.strip() for cell in row)]
    preview = rows[:max_rows]
    rendered = "\n".join(" | ".join(cell for cell in row) for row in preview)
    plural = "" if len(preview) == 1 else "s"
    header = f"CSV preview (first {len(preview)} row{plural})"
    if len(rows) > len(preview):
        header = f"{header}, truncated from {len(rows)} rows"
    return f"{header}\n\n{rendered}".strip()


def _decode_text(payload: FilePayload) -> str:
    try:
        return payload.data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationError("Unsupported file type. Upload a PDF, image, CSV or plain-text file.") from exc
