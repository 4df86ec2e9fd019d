from pydantic import BaseModel
from typing import Literal, Union

RejectReason = Literal[
    "NoFileProvided",
    "UnsupportedType",
    "SizeLimitExceeded",
    "StorageFailure",
    "MalformedRequest",
]

SUCCESS_MESSAGE = "File uploaded successfully!"
NO_FILE_MESSAGE = "No file was uploaded."
INVALID_TYPE_MESSAGE = "Invalid file type. Only PNG, JPG, PDF, and DOCX are allowed."
STORAGE_FAILURE_MESSAGE = "File could not be stored."
UNEXPECTED_FIELD_MESSAGE = "Unexpected field"
MISSING_BOUNDARY_MESSAGE = "Missing boundary in multipart."
UNEXPECTED_END_MESSAGE = "Unexpected end of form."
ABORTED_MESSAGE = "Upload aborted by client."

_STATUS = {
    "NoFileProvided": 400,
    "UnsupportedType": 400,
    "SizeLimitExceeded": 400,
    "MalformedRequest": 400,
    "StorageFailure": 500,
}


class Accepted(BaseModel):
    kind: Literal["accepted"] = "accepted"
    stored_name: str
    path: str
    size: int

    @property
    def status_code(self) -> int:
        return 200

    def body(self) -> dict:
        return UploadResponse(message=SUCCESS_MESSAGE, filename=self.stored_name).model_dump()


class Rejected(BaseModel):
    kind: Literal["rejected"] = "rejected"
    reason: RejectReason
    message: str

    @property
    def status_code(self) -> int:
        return _STATUS[self.reason]

    def body(self) -> dict:
        return ErrorResponse(message=self.message).model_dump()


UploadOutcome = Union[Accepted, Rejected]


class UploadResponse(BaseModel):
    message: str
    filename: str


class ErrorResponse(BaseModel):
    message: str


def size_limit_message(limit: int) -> str:
    return f"File too large. Maximum size is {format_bytes(limit)}."


def format_bytes(n: int) -> str:
    mb = 1024 * 1024
    if n >= mb and n % mb == 0:
        return f"{n // mb}MB"
    if n >= 1024 and n % 1024 == 0:
        return f"{n // 1024}KB"
    return f"{n} bytes"
