import logging
from typing import Literal

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from make_this_usable.api.schemas import ErrorResponse, TransformResponse
from make_this_usable.config import Settings, get_settings
from make_this_usable.errors import TransformError
from make_this_usable.pipeline.request_validator import read_transform_request
from make_this_usable.service.transformer import TransformService, render_plain_text

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="make-this-usable", version="0.1.0")
service = TransformService()

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 413, 500, 502)
}


@app.exception_handler(TransformError)
async def handle_transform_error(request: Request, exc: TransformError) -> JSONResponse:
    logger.info(
        "transform.rejected status=%d type=%s message=%s",
        exc.status_code,
        exc.__class__.__name__,
        exc.message,
    )
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("transform.rejected status=400 type=RequestValidationError errors=%d", len(exc.errors()))
    return JSONResponse({"error": "Invalid request format"}, status_code=400)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("transform.unexpected type=%s", exc.__class__.__name__)
    return JSONResponse({"error": "An unexpected error occurred"}, status_code=500)


@app.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@app.post("/api/transform", response_model=TransformResponse, responses=ERROR_RESPONSES)
async def transform(
    request: Request,
    output_format: Literal["json", "text"] = Query("json", alias="format"),
    settings: Settings = Depends(get_settings),
) -> Response:
    payload = await read_transform_request(request, settings)
    result = await service.transform(payload)
    headers = {"X-Transform-Restyled": str(result.restyled).lower()}
    if output_format == "text":
        return PlainTextResponse(render_plain_text(result.document), headers=headers)
    return JSONResponse(result.document.model_dump(), headers=headers)
