import logging
from dataclasses import dataclass
from typing import TypedDict

from langgraph.graph import END, START, StateGraph

from make_this_usable.api.schemas import TransformResponse
from make_this_usable.config import Settings, get_settings
from make_this_usable.errors import (
    ConfigurationError,
    MalformedModelOutputError,
    TransformError,
    UnexpectedSchemaError,
    UpstreamError,
)
from make_this_usable.pipeline.attachments import PreparedAttachment, prepare_attachment
from make_this_usable.pipeline.prompts import build_generate_prompt, build_restyle_prompt
from make_this_usable.pipeline.request_validator import FilePayload, TextPayload, TransformPayload
from make_this_usable.pipeline.response_validator import parse_model_output, sanitize
from make_this_usable.providers.llm.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

RESTYLE_SKIPPED = "no_notes"
RESTYLE_APPLIED = "applied"


@dataclass(frozen=True)
class TransformResult:
    document: TransformResponse
    restyled: bool
    restyle_status: str

    def as_meta(self) -> dict:
        return {
            "restyled": self.restyled,
            "restyle_status": self.restyle_status,
            "sections": len(self.document.sections),
            "next_actions": len(self.document.next_actions),
        }


class WorkflowState(TypedDict):
    source_text: str | None
    attachment: PreparedAttachment | None
    notes: str | None
    document: TransformResponse | None
    restyled: bool
    restyle_status: str


class TransformWorkflow:
    """Generate -> optional restyle -> sanitize, as a LangGraph state graph.

    The restyle step only runs when notes are present and never fails the run:
    any error there keeps the document produced by the generate step.
    """

    def __init__(self, settings: Settings | None = None, provider: OpenAIProvider | None = None) -> None:
        self.settings = settings or get_settings()
        self.provider = provider or OpenAIProvider(self.settings)
        self._graph = self._build_graph()

    async def run(self, payload: TransformPayload) -> TransformResult:
        match payload:
            case TextPayload(text=text, notes=notes):
                source_text, attachment = text, None
            case FilePayload(notes=notes):
                source_text, attachment = None, prepare_attachment(payload, self.settings)
            case _:
                raise TypeError(f"unsupported payload: {type(payload).__name__}")

        try:
            final_state = await self._graph.ainvoke(
                {
                    "source_text": source_text,
                    "attachment": attachment,
                    "notes": notes,
                    "document": None,
                    "restyled": False,
                    "restyle_status": RESTYLE_SKIPPED,
                }
            )
        except TransformError as exc:
            logger.warning(
                "transform.failed type=%s status=%d",
                exc.__class__.__name__,
                exc.status_code,
            )
            raise

        return TransformResult(
            document=final_state["document"],
            restyled=final_state["restyled"],
            restyle_status=final_state["restyle_status"],
        )

    def _build_graph(self):
        graph = StateGraph(WorkflowState)
        graph.add_node("generate_step", self._generate_node)
        graph.add_node("restyle_step", self._restyle_node)
        graph.add_node("sanitize_step", self._sanitize_node)
        graph.add_edge(START, "generate_step")
        graph.add_conditional_edges(
            "generate_step",
            self._route_after_generate,
            {"restyle": "restyle_step", "sanitize": "sanitize_step"},
        )
        graph.add_edge("restyle_step", "sanitize_step")
        graph.add_edge("sanitize_step", END)
        return graph.compile()

    @staticmethod
    def _route_after_generate(state: WorkflowState) -> str:
        return "restyle" if state["notes"] else "sanitize"

    async def _generate_node(self, state: WorkflowState) -> dict:
        logger.info("generate")
        attachment = state["attachment"]
        if attachment is not None and attachment.needs_upload:
            raw = await self._generate_from_file(attachment, state["notes"])
        else:
            text = state["source_text"] if attachment is None else attachment.inline_text
            prompt = build_generate_prompt(
                text=text,
                file_name=attachment.filename if attachment is not None else None,
                notes=state["notes"],
            )
            raw = await self.provider.complete_json(
                prompt.system,
                prompt.user,
                temperature=self.settings.primary_temperature,
                model=self.settings.openai_text_model,
            )
        return {"document": parse_model_output(raw)}

    async def _generate_from_file(self, attachment: PreparedAttachment, notes: str | None) -> str:
        prompt = build_generate_prompt(file_name=attachment.filename, notes=notes)
        file_id = await self.provider.upload_file(attachment.filename, attachment.data or b"", attachment.content_type)
        try:
            return await self.provider.complete_json_with_file(
                prompt.system,
                prompt.user,
                file_id=file_id,
                is_image=attachment.is_image,
                temperature=self.settings.primary_temperature,
            )
        finally:
            await self.provider.delete_file(file_id)

    async def _restyle_node(self, state: WorkflowState) -> dict:
        logger.info("restyle")
        prompt = build_restyle_prompt(sanitize(state["document"]), state["notes"] or "")
        try:
            raw = await self.provider.complete_json(
                prompt.system,
                prompt.user,
                temperature=self.settings.restyle_temperature,
                model=self.settings.openai_text_model,
            )
            restyled = parse_model_output(raw)
        except MalformedModelOutputError:
            return self._restyle_fallback("restyle_invalid_json")
        except UnexpectedSchemaError:
            return self._restyle_fallback("restyle_schema_mismatch")
        except (UpstreamError, ConfigurationError):
            return self._restyle_fallback("restyle_upstream_error")
        except Exception as exc:
            logger.exception("restyle.unexpected type=%s", exc.__class__.__name__)
            return self._restyle_fallback("restyle_error")
        return {"document": restyled, "restyled": True, "restyle_status": RESTYLE_APPLIED}

    @staticmethod
    def _restyle_fallback(reason: str) -> dict:
        logger.warning("restyle.fallback reason=%s", reason)
        return {"restyled": False, "restyle_status": reason}

    async def _sanitize_node(self, state: WorkflowState) -> dict:
        logger.info("sanitize")
        return {"document": sanitize(state["document"])}
