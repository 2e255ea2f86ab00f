from __future__ import annotations

from dataclasses import dataclass

from cccd.schema import ErrorKind


@dataclass
class EngineError(Exception):
    """Standard error raised by engine adapters.

    Parameters
    ----------
    code:
        Short machine readable error code.
    message:
        Human readable error message.
    """

    code: str
    message: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.code}: {self.message}"


MISSING_DEPENDENCY = "MISSING_DEPENDENCY"
MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
MISSING_PROMPT = "MISSING_PROMPT"
QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
INVALID_FORMAT = "INVALID_FORMAT"
SAFETY_BLOCK = "SAFETY_BLOCK"
API_ERROR = "API_ERROR"
PARSE_ERROR = "PARSE_ERROR"
OCR_ERROR = "OCR_ERROR"
NO_CODE = "NO_CODE"

# User-facing messages shown for cloud AI failures.
USER_MESSAGES = {
    MISSING_CREDENTIALS: (
        "Khóa API chưa được cấu hình. Vui lòng thêm khóa API vào biến môi trường."
    ),
    QUOTA_EXCEEDED: "Đã vượt quá hạn ngạch API. Vui lòng thử lại sau.",
    INVALID_FORMAT: "Định dạng ảnh không hợp lệ. Vui lòng tải lên ảnh CCCD rõ nét.",
    SAFETY_BLOCK: "Ảnh bị chặn bởi bộ lọc an toàn. Vui lòng thử ảnh khác.",
}
GENERIC_MESSAGE = "Không thể trích xuất thông tin CCCD bằng AI."
NO_DATA_MESSAGE = (
    "Không thể trích xuất thông tin CCCD từ ảnh. "
    "Vui lòng đảm bảo ảnh rõ nét và chứa thẻ CCCD Việt Nam."
)

_ERROR_KINDS = {
    MISSING_DEPENDENCY: ErrorKind.UNSUPPORTED,
    MISSING_CREDENTIALS: ErrorKind.UNSUPPORTED,
    MISSING_PROMPT: ErrorKind.UNSUPPORTED,
    QUOTA_EXCEEDED: ErrorKind.UNSUPPORTED,
    SAFETY_BLOCK: ErrorKind.MALFORMED_RESPONSE,
    INVALID_FORMAT: ErrorKind.MALFORMED_RESPONSE,
    PARSE_ERROR: ErrorKind.MALFORMED_RESPONSE,
    API_ERROR: ErrorKind.NO_DATA,
    OCR_ERROR: ErrorKind.NO_DATA,
    NO_CODE: ErrorKind.NO_DATA,
}


def classify_exception(exc: BaseException) -> str:
    """Map an SDK or transport exception onto an engine error code.

    Provider SDKs raise a zoo of exception types, so the decision is made on
    the message text.
    """
    if isinstance(exc, EngineError):
        return exc.code
    message = str(exc)
    lowered = message.lower()
    if "api key" in lowered or "api_key" in lowered:
        return MISSING_CREDENTIALS
    if "quota" in lowered or "limit" in lowered:
        return QUOTA_EXCEEDED
    if "invalid" in lowered or "format" in lowered:
        return INVALID_FORMAT
    if "SAFETY" in message:
        return SAFETY_BLOCK
    return API_ERROR


def user_message(code: str, provider: str | None = None) -> str:
    """Return the message shown to the operator for ``code``."""
    message = USER_MESSAGES.get(code, GENERIC_MESSAGE)
    if provider:
        label = PROVIDER_LABELS.get(provider, provider)
        message = message.replace("Khóa API", f"Khóa API {label}", 1)
        message = message.replace("hạn ngạch API", f"hạn ngạch API {label}", 1)
        message = message.replace("bằng AI", f"bằng {label} AI", 1)
    return message


def error_kind(code: str) -> ErrorKind:
    return _ERROR_KINDS.get(code, ErrorKind.NO_DATA)


PROVIDER_LABELS = {"gemini": "Gemini", "openai": "OpenAI", "gpt": "OpenAI"}


__all__ = [
    "EngineError",
    "classify_exception",
    "user_message",
    "error_kind",
    "NO_DATA_MESSAGE",
    "MISSING_DEPENDENCY",
    "MISSING_CREDENTIALS",
    "MISSING_PROMPT",
    "QUOTA_EXCEEDED",
    "INVALID_FORMAT",
    "SAFETY_BLOCK",
    "API_ERROR",
    "PARSE_ERROR",
    "OCR_ERROR",
    "NO_CODE",
]
