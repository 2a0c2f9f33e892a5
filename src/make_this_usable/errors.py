"""Error taxonomy for the transform pipeline.

Every error carries the HTTP status and the user-facing message the API
returns as ``{"error": message}``. Provider internals never end up in
``message``; they are logged where the error is raised.
"""


class TransformError(Exception):
    status_code = 500
    default_message = "Failed to transform text. Please try again."

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(TransformError):
    status_code = 400
    default_message = "Invalid request format"


class MissingFileError(ValidationError):
    default_message = "Missing file upload. Attach a file in the 'file' field."


class PayloadTooLargeError(TransformError):
    status_code = 413
    default_message = "Input is too large."


class FileTooLargeError(PayloadTooLargeError):
    def __init__(self, limit_bytes: int, actual_bytes: int) -> None:
        self.limit_bytes = limit_bytes
        self.actual_bytes = actual_bytes
        super().__init__(
            f"File is too large. Maximum size: {format_file_size(limit_bytes)}. "
            f"Your file: {format_file_size(actual_bytes)}."
        )


class ConfigurationError(TransformError):
    status_code = 500
    default_message = "Server is missing required configuration."


class UpstreamError(TransformError):
    """Provider failure normalized to a status and a message from its error payload."""

    status_code = 500


class ModelOutputError(TransformError):
    status_code = 502


class MalformedModelOutputError(ModelOutputError):
    default_message = "Model returned an invalid response format. Please try again."


class UnexpectedSchemaError(ModelOutputError):
    default_message = "Model returned an unexpected response shape. Please try again."


def format_file_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"
