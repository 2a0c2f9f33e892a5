import logging
from typing import Any

import openai
from openai import AsyncOpenAI

from make_this_usable.config import Settings
from make_this_usable.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)
ERROR_LOG_LIMIT = 1000
PAYLOAD_LOG_LIMIT = 4000
JSON_RESPONSE_FORMAT = {"type": "json_object"}
SERVER_AUTH_STATUSES = {401, 403}
PROVIDER_AUTH_MESSAGE = "The model provider rejected the server's credentials. Please contact the administrator."


class OpenAIProvider:
    """OpenAI-compatible text generation in JSON output mode.

    Plain prompts go through a LangChain chat model. File prompts need the
    upload primitive and file references, so they use the OpenAI SDK directly.
    Provider errors leave this class as ``UpstreamError``.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._llms: dict[tuple[str, float], Any] = {}
        self._client: AsyncOpenAI | None = None

    async def complete_json(
        self,
        system: str,
        user: str,
        temperature: float,
        model: str | None = None,
    ) -> str:
        model_name = model or self.settings.openai_text_model
        llm = self._get_llm(model_name, temperature)
        logger.info(
            "llm.request model=%s temperature=%.2f chars=%d",
            model_name,
            temperature,
            len(system) + len(user),
        )
        logger.debug("llm.request.full model=%s\n%s", model_name, self._clip(user, PAYLOAD_LOG_LIMIT))
        try:
            response = await llm.ainvoke([("system", system), ("human", user)])
        except openai.OpenAIError as exc:
            raise self._normalize_error(exc, model_name) from exc
        text = self._message_text(getattr(response, "content", response))
        logger.info("llm.response model=%s chars=%d", model_name, len(text))
        logger.debug("llm.response.full model=%s\n%s", model_name, self._clip(text, PAYLOAD_LOG_LIMIT))
        return text

    async def upload_file(self, filename: str, data: bytes, content_type: str) -> str:
        client = self._get_client()
        logger.info("llm.file.upload filename=%s bytes=%d type=%s", filename, len(data), content_type)
        try:
            uploaded = await client.files.create(file=(filename, data, content_type), purpose="user_data")
        except openai.OpenAIError as exc:
            raise self._normalize_error(exc, "files") from exc
        return uploaded.id

    async def delete_file(self, file_id: str) -> None:
        try:
            await self._get_client().files.delete(file_id)
        except openai.OpenAIError as exc:
            logger.warning("llm.file.delete_failed file_id=%s detail=%s", file_id, self._extract_error_detail(exc))

    async def complete_json_with_file(
        self,
        system: str,
        user: str,
        file_id: str,
        is_image: bool,
        temperature: float,
    ) -> str:
        client = self._get_client()
        model_name = self.settings.openai_file_model
        if is_image:
            file_part = {"type": "input_image", "file_id": file_id, "detail": "auto"}
        else:
            file_part = {"type": "input_file", "file_id": file_id}
        logger.info(
            "llm.request model=%s temperature=%.2f file_id=%s image=%s",
            model_name,
            temperature,
            file_id,
            is_image,
        )
        try:
            response = await client.responses.create(
                model=model_name,
                instructions=system,
                input=[{"role": "user", "content": [file_part, {"type": "input_text", "text": user}]}],
                text={"format": JSON_RESPONSE_FORMAT},
                temperature=temperature,
            )
        except openai.OpenAIError as exc:
            raise self._normalize_error(exc, model_name) from exc
        text = (response.output_text or "").strip()
        logger.info("llm.response model=%s chars=%d", model_name, len(text))
        return text

    def _get_llm(self, model: str, temperature: float):
        self._require_api_key()
        key = (model, temperature)
        if key not in self._llms:
            from langchain_openai import ChatOpenAI

            chat = ChatOpenAI(
                model=model,
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url,
                timeout=self.settings.llm_timeout_seconds,
                max_retries=self.settings.llm_num_retries,
                temperature=temperature,
            )
            self._llms[key] = chat.bind(response_format=JSON_RESPONSE_FORMAT)
        return self._llms[key]

    def _get_client(self) -> AsyncOpenAI:
        self._require_api_key()
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url,
                timeout=self.settings.llm_timeout_seconds,
                max_retries=self.settings.llm_num_retries,
            )
        return self._client

    def _require_api_key(self) -> None:
        if not self.settings.openai_api_key:
            logger.error("config.missing key=OPENAI_API_KEY")
            raise ConfigurationError("Server is missing OPENAI_API_KEY configuration.")

    def _normalize_error(self, exc: Exception, model: str) -> UpstreamError:
        logger.error(
            "llm.error model=%s type=%s detail=%s",
            model,
            exc.__class__.__name__,
            self._extract_error_detail(exc),
        )
        status_code = getattr(exc, "status_code", None)
        if status_code in SERVER_AUTH_STATUSES:
            # provider rejected our credentials, not the client's request
            return UpstreamError(PROVIDER_AUTH_MESSAGE, status_code=500)
        return UpstreamError(
            message=self._provider_message(getattr(exc, "body", None)),
            status_code=status_code if isinstance(status_code, int) else 500,
        )

    @staticmethod
    def _provider_message(body: Any) -> str | None:
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
        return None

    @staticmethod
    def _message_text(content: Any) -> str:
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    if "text" in item:
                        parts.append(str(item["text"]))
                    else:
                        parts.append(str(item))
                else:
                    parts.append(str(item))
            return "\n".join(parts).strip()
        return str(content).strip()

    @staticmethod
    def _clip(text: str, limit: int) -> str:
        if len(text) <= limit:
            return text
        return f"{text[:limit]}...(truncated)"

    def _extract_error_detail(self, exc: Exception) -> str:
        status_code = getattr(exc, "status_code", None)
        message = getattr(exc, "message", None) or str(exc)
        body = getattr(exc, "body", None)
        details = [f"status_code={status_code}" if status_code is not None else ""]
        if body is not None:
            details.append(f"body={body}")
        details.append(f"message={message}")
        return self._clip(" ".join([part for part in details if part]).strip(), ERROR_LOG_LIMIT)
