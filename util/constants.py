from typing import Final


class InternalURIs:
    API = "/api"
    V1 = API + "/v1"
    GEMINI = V1 + "/gemini"
    GEMINI_BACKGROUND = V1 + "/gemini-background"
    VALIDATE_SERVER_KEY = V1 + "/validate-server-key"


class ExternalURIs:
    UPLOAD_FILES = "/upload/v1beta/files"
    MODELS = "/v1beta/models"


class UploadHeaders:
    PROTOCOL = "X-Goog-Upload-Protocol"
    COMMAND = "X-Goog-Upload-Command"
    OFFSET = "X-Goog-Upload-Offset"
    HEADER_CONTENT_LENGTH = "X-Goog-Upload-Header-Content-Length"
    HEADER_CONTENT_TYPE = "X-Goog-Upload-Header-Content-Type"
    # Response header carrying the resumable session URL
    UPLOAD_URL = "x-goog-upload-url"
    CHUNK_GRANULARITY = "x-goog-upload-chunk-granularity"


class UploadCommands:
    START = "start"
    UPLOAD = "upload"
    UPLOAD_FINALIZE = "upload, finalize"


KIB: Final[int] = 1024
MIB: Final[int] = 1024 * KIB

# Resumable upload chunks must be multiples of this
UPLOAD_GRANULARITY: Final[int] = 256 * KIB
# 3 MiB raw keeps the base64 JSON body under ~4.5 MB for serverless proxies
PROXY_CHUNK_SIZE: Final[int] = 3 * MIB
DIRECT_CHUNK_SIZE: Final[int] = 8 * MIB

DEFAULT_MIME_TYPE: Final[str] = "audio/webm"
