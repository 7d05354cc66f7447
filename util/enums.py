# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class UploadTransportKind(str, Enum):
    PROXY = "proxy"
    DIRECT = "direct"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    MISSING_SERVER_KEY = ErrorInfo(
        "API_KEY not configured on server", status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    INVALID_SERVER_KEY = ErrorInfo(
        "Server API key rejected by Gemini", status.HTTP_401_UNAUTHORIZED
    )
    INVALID_ACTION = ErrorInfo("Invalid Action", status.HTTP_400_BAD_REQUEST)
    INVALID_PAYLOAD = ErrorInfo("Invalid request payload", status.HTTP_400_BAD_REQUEST)
    FOREIGN_UPLOAD_URL = ErrorInfo(
        "Upload URL does not point at the Gemini upload endpoint",
        status.HTTP_400_BAD_REQUEST,
    )
    INTERNAL_ERROR = ErrorInfo("Internal Error", status.HTTP_502_BAD_GATEWAY)
