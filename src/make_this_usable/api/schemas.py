from pydantic import BaseModel, Field, StrictStr


class TransformRequestBody(BaseModel):
    text: StrictStr = Field(..., min_length=1, description="Messy source text to organize.")
    notes: StrictStr | None = Field(
        default=None,
        description="Optional style notes, applied as presentation constraints only.",
    )


class Section(BaseModel):
    heading: StrictStr
    bullets: list[StrictStr]


class NextAction(BaseModel):
    action: StrictStr
    first_step: StrictStr


class TransformResponse(BaseModel):
    title: StrictStr
    summary: StrictStr
    sections: list[Section]
    next_actions: list[NextAction]


class ErrorResponse(BaseModel):
    error: str
