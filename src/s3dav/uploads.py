"""Multipart form parsing for bulk uploads.

Starlette yields form values as either ``str`` or ``UploadFile``.  They are
sorted into :class:`Field` and :class:`FileField` once here, so the upload
handler only ever deals with file parts.
"""

from dataclasses import dataclass
from starlette.datastructures import UploadFile


@dataclass(frozen=True)
class Field:
    name: str
    value: str


@dataclass(frozen=True)
class FileField:
    name: str
    filename: str
    content: bytes


async def parse_form(form):
    """Return the parts of a Starlette FormData in submission order."""
    parts = []
    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            content = await value.read()
            parts.append(FileField(name, value.filename or "", content))
        else:
            parts.append(Field(name, value))
    return parts


def file_fields(parts):
    return [part for part in parts if isinstance(part, FileField)]
