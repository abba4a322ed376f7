import re
from dataclasses import dataclass, field
from typing import Any, Union

from catalog.errors import ValidationError

# Values stored in the mixed-type fields: a number, a string, or absent
FlexValue = Union[int, float, str, None]

STRING_FIELDS = (
    "name",
    "type",
    "axis",
    "status",
    "tracking",
    "observatory",
    "link",
    "report",
    "description",
)
NUMBER_FIELDS = ("start",)
FLEX_FIELDS = ("end", "cadence")

ATTACHMENT_SLOTS = ("file", "analysis_file", "law_file")

# Identity assigned by a storage backend, echoed back by clients
INTERNAL_ID_KEYS = ("_id",)

_INTEGER = re.compile(r"^-?\d+$")

# Range of the BIGINT primary key, negatives excluded
MAX_ID = 2**63 - 1


def coerce_id(value: Any) -> int:
    """Normalize a record id to int, rejecting anything non-integral."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("ID is required")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    elif isinstance(value, str) and _INTEGER.match(value.strip()):
        result = int(value.strip())
    else:
        raise ValidationError(f"ID must be an integer, got {value!r}")
    if not 0 <= result <= MAX_ID:
        raise ValidationError(f"ID must be between 0 and {MAX_ID}, got {result}")
    return result


def _check_string(key: str, value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ValidationError(f"Field '{key}' must be a string")


def _check_number(key: str, value: Any) -> int | float | None:
    if value is None or (isinstance(value, (int, float)) and not isinstance(value, bool)):
        return value
    raise ValidationError(f"Field '{key}' must be a number")


def _check_flex(key: str, value: Any) -> FlexValue:
    if isinstance(value, bool):
        raise ValidationError(f"Field '{key}' must be a number or a string")
    if value is None or isinstance(value, (int, float, str)):
        return value
    raise ValidationError(f"Field '{key}' must be a number or a string")


@dataclass
class Attachment:
    """A small document embedded on the record as base64."""

    name: str | None = None
    content_base64: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_dict(cls, slot: str, data: dict) -> "Attachment | None":
        name = _check_string(f"{slot}_name", data.get(f"{slot}_name"))
        content = _check_string(f"{slot}_base64", data.get(f"{slot}_base64"))
        mime_type = _check_string(f"{slot}_type", data.get(f"{slot}_type"))
        if name is None and content is None and mime_type is None:
            return None
        return cls(name=name, content_base64=content, mime_type=mime_type)

    def to_dict(self, slot: str) -> dict:
        return {
            f"{slot}_name": self.name,
            f"{slot}_base64": self.content_base64,
            f"{slot}_type": self.mime_type,
        }


@dataclass
class Instrument:
    """
    An instrument record.

    The document schema is flexible: known fields are validated, unknown
    keys are kept in ``extra`` and written back untouched.
    """

    id: int
    name: str | None = None
    type: str | None = None
    axis: str | None = None
    start: int | float | None = None
    end: FlexValue = None
    cadence: FlexValue = None
    status: str | None = None
    tracking: str | None = None
    observatory: str | None = None
    link: str | None = None
    report: str | None = None
    description: str | None = None
    attachments: dict[str, Attachment] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Instrument":
        if not isinstance(data, dict):
            raise ValidationError("Instrument must be a JSON object")
        data = {k: v for k, v in data.items() if k not in INTERNAL_ID_KEYS}

        values: dict[str, Any] = {"id": coerce_id(data.get("id"))}
        for key in STRING_FIELDS:
            values[key] = _check_string(key, data.get(key))
        for key in NUMBER_FIELDS:
            values[key] = _check_number(key, data.get(key))
        for key in FLEX_FIELDS:
            values[key] = _check_flex(key, data.get(key))

        attachments = {}
        for slot in ATTACHMENT_SLOTS:
            attachment = Attachment.from_dict(slot, data)
            if attachment is not None:
                attachments[slot] = attachment

        known = {"id", *STRING_FIELDS, *NUMBER_FIELDS, *FLEX_FIELDS}
        for slot in ATTACHMENT_SLOTS:
            known.update((f"{slot}_name", f"{slot}_base64", f"{slot}_type"))
        extra = {k: v for k, v in data.items() if k not in known}

        return cls(**values, attachments=attachments, extra=extra)

    def to_dict(self) -> dict:
        """Serialize to the stored document. Absent fields are omitted."""
        doc: dict[str, Any] = dict(self.extra)
        doc["id"] = self.id
        for key in (*STRING_FIELDS, *NUMBER_FIELDS, *FLEX_FIELDS):
            value = getattr(self, key)
            if value is not None:
                doc[key] = value
        for slot, attachment in self.attachments.items():
            doc.update({k: v for k, v in attachment.to_dict(slot).items() if v is not None})
        return doc
