import logging
from contextlib import aclosing
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from python_multipart import MultipartParser
from python_multipart.exceptions import FormParserError, MultipartParseError
from python_multipart.multipart import parse_options_header
from starlette.requests import ClientDisconnect, Request

from uploader.core.config import Settings
from uploader.models.outcome import (
    ABORTED_MESSAGE,
    INVALID_TYPE_MESSAGE,
    MISSING_BOUNDARY_MESSAGE,
    NO_FILE_MESSAGE,
    STORAGE_FAILURE_MESSAGE,
    UNEXPECTED_END_MESSAGE,
    UNEXPECTED_FIELD_MESSAGE,
    Accepted,
    Rejected,
    RejectReason,
    UploadOutcome,
    size_limit_message,
)
from uploader.services.naming import generate_stored_name
from uploader.utils.storage import PartialUpload, StorageSink, sanitize_original_name

log = logging.getLogger("upload")

# room for "<epoch-millis>-<random>-" in front of the original name
NAME_PREFIX_BYTES = 32


def normalize_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    normalized = content_type.split(";")[0].strip().lower()
    return normalized or None


def _decode(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


class PartHeaders(NamedTuple):
    field_name: str
    filename: Optional[str]
    content_type: str


class FormEvents:
    """
    Callback sink for python-multipart. Parser callbacks are synchronous,
    so they only queue events; the pipeline acts on them between writes.
    """

    def __init__(self):
        self.events: list[tuple[str, object]] = []
        self.finished = False
        self._headers: dict[bytes, bytes] = {}
        self._name = b""
        self._value = b""

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_end": self.on_end,
        }

    def drain(self) -> list[tuple[str, object]]:
        events, self.events = self.events, []
        return events

    def on_part_begin(self) -> None:
        self._headers = {}

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._name.lower()] = self._value
        self._name = b""
        self._value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition"))
        if b"name" not in options:
            raise MultipartParseError('The Content-Disposition header field "name" must be provided.')
        filename = _decode(options[b"filename"]) if b"filename" in options else None
        content_type = self._headers.get(b"content-type", b"").decode("latin-1")
        self.events.append(("part", PartHeaders(_decode(options[b"name"]), filename, content_type)))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self.events.append(("data", data[start:end]))

    def on_part_end(self) -> None:
        self.events.append(("part_end", None))

    def on_end(self) -> None:
        self.finished = True


class _Transfer:
    def __init__(self):
        self.filename = ""
        self.partial: Optional[PartialUpload] = None
        self.writing: Optional[PartialUpload] = None
        self.committed = False


class UploadPipeline:
    """
    One request in, one UploadOutcome out.

    The body is parsed as it arrives. The declared type is checked on the
    part headers before any content is accepted, the size is checked on
    every chunk, and reading stops at the first rejection. Content goes to
    a hidden temp file that is renamed into place only after the closing
    boundary has been seen.
    """

    def __init__(self, settings: Settings, sink: Optional[StorageSink] = None):
        self.settings = settings
        self.sink = sink or StorageSink(settings.upload_dir)

    async def process(self, request: Request) -> UploadOutcome:
        ctype, params = parse_options_header(request.headers.get("content-type"))
        if ctype.lower() != b"multipart/form-data":
            return self._reject("NoFileProvided", NO_FILE_MESSAGE)
        boundary = params.get(b"boundary")
        if not boundary:
            return self._reject("MalformedRequest", MISSING_BOUNDARY_MESSAGE)

        transfer = _Transfer()
        try:
            outcome = await self._receive(request, boundary, transfer)
            if outcome is None:
                outcome = self._store(transfer)
            return outcome
        except FormParserError as e:
            return self._reject("MalformedRequest", str(e))
        except ClientDisconnect:
            return self._reject("MalformedRequest", ABORTED_MESSAGE)
        except OSError:
            log.exception("Failed to store upload %r", transfer.filename)
            return self._reject("StorageFailure", STORAGE_FAILURE_MESSAGE)
        finally:
            if not transfer.committed:
                self.sink.discard(transfer.partial)

    async def _receive(self, request: Request, boundary: bytes, transfer: _Transfer) -> Optional[Rejected]:
        events = FormEvents()
        parser = MultipartParser(boundary, events.callbacks())
        async with aclosing(request.stream()) as stream:
            async for chunk in stream:
                if not chunk:
                    continue
                parser.write(chunk)
                rejected = await self._apply(events.drain(), transfer)
                if rejected is not None:
                    return rejected
        parser.finalize()

        if not events.finished:
            return self._reject("MalformedRequest", UNEXPECTED_END_MESSAGE)
        if transfer.partial is None:
            return self._reject("NoFileProvided", NO_FILE_MESSAGE)
        return None

    async def _apply(self, events: list[tuple[str, object]], transfer: _Transfer) -> Optional[Rejected]:
        limit = self.settings.max_upload_bytes
        for kind, payload in events:
            if kind == "part":
                transfer.writing = None
                part = payload
                # text fields and "no file selected" parts carry nothing to store
                if not part.filename:
                    continue
                if part.field_name != self.settings.field_name or transfer.partial is not None:
                    return self._reject("MalformedRequest", UNEXPECTED_FIELD_MESSAGE)
                if normalize_content_type(part.content_type) not in self.settings.allowed_mime_types:
                    log.info("Declared type %r not allowed for %r", part.content_type, part.filename)
                    return self._reject("UnsupportedType", INVALID_TYPE_MESSAGE)
                transfer.filename = part.filename
                transfer.partial = self.sink.open_partial()
                transfer.writing = transfer.partial
            elif kind == "data":
                if transfer.writing is None:
                    continue
                if transfer.writing.size + len(payload) > limit:
                    return self._reject("SizeLimitExceeded", size_limit_message(limit))
                await transfer.writing.write(payload)
            elif kind == "part_end" and transfer.writing is not None:
                transfer.writing.close()
                transfer.writing = None
        return None

    def _store(self, transfer: _Transfer) -> Accepted:
        original = sanitize_original_name(transfer.filename, reserved=NAME_PREFIX_BYTES)
        stored_name = generate_stored_name(original, datetime.now(timezone.utc))
        dest = self.sink.commit(transfer.partial, stored_name)
        transfer.committed = True

        accepted = Accepted(stored_name=stored_name, path=str(dest), size=transfer.partial.size)
        log.info("File uploaded successfully: %s (%d bytes)", accepted.path, accepted.size)
        return accepted

    def _reject(self, reason: RejectReason, message: str) -> Rejected:
        log.warning("Upload rejected (%s): %s", reason, message)
        return Rejected(reason=reason, message=message)
