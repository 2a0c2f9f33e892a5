import logging

from make_this_usable.api.schemas import TransformResponse
from make_this_usable.pipeline.request_validator import FilePayload, TextPayload, TransformPayload
from make_this_usable.pipeline.response_validator import sanitize
from make_this_usable.workflow.transform import TransformResult, TransformWorkflow

logger = logging.getLogger(__name__)


class TransformService:
    def __init__(self, workflow: TransformWorkflow | None = None) -> None:
        self.workflow = workflow or TransformWorkflow()

    async def transform(self, payload: TransformPayload) -> TransformResult:
        logger.info("transform.request %s", self._describe(payload))
        result = await self.workflow.run(payload)
        meta = result.as_meta()
        logger.info(
            "transform.meta restyled=%s restyle_status=%s sections=%d next_actions=%d",
            meta["restyled"],
            meta["restyle_status"],
            meta["sections"],
            meta["next_actions"],
        )
        return result

    @staticmethod
    def _describe(payload: TransformPayload) -> str:
        match payload:
            case TextPayload(text=text, notes=notes):
                return f"kind=text chars={len(text)} notes={bool(notes)}"
            case FilePayload(filename=filename, content_type=content_type, data=data, notes=notes):
                return f"kind=file filename={filename} type={content_type} bytes={len(data)} notes={bool(notes)}"
        return f"kind={type(payload).__name__}"


def render_plain_text(document: TransformResponse) -> str:
    """Render a document the way the copy button lays it out."""
    lines = [document.title, "", document.summary, ""]
    for section in document.sections:
        lines.append(section.heading)
        lines.extend(f"• {bullet}" for bullet in section.bullets)
        lines.append("")
    actions = sanitize(document).next_actions
    if actions:
        lines.append("Next Actions")
        for item in actions:
            lines.append(f"☐ {item.action}")
            lines.append(f"  First step: {item.first_step}")
    return "\n".join(lines).rstrip() + "\n"
