"""Turn raw lookup payloads into ordered display fields."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

CATEGORY_IDENTITY = "identity"
CATEGORY_NAME = "name"
CATEGORY_PHONE = "phone"
CATEGORY_REGION = "region"
CATEGORY_ADDRESS = "address"
CATEGORY_OTHER = "other"

_EMPTY_MARKERS = {"not found", "[not set]"}

_KNOWN_FIELDS: Dict[str, Tuple[str, str]] = {
    "id_number": ("Aadhaar No.", CATEGORY_IDENTITY),
    "name": ("Name", CATEGORY_NAME),
    "mobile": ("Mobile", CATEGORY_PHONE),
    "alt_mobile": ("Alt Mobile", CATEGORY_PHONE),
    "circle": ("Circle", CATEGORY_REGION),
    "address": ("Address", CATEGORY_ADDRESS),
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_COMMA_RUN = re.compile(r"\s*,(\s*,)+\s*")
_EDGE_NOISE = re.compile(r"^[,\s]+|[,\s]+$")


@dataclass(frozen=True)
class DisplayField:
    label: str
    value: str
    category: str
    item_index: int = 0


@dataclass(frozen=True)
class FormattedLookup:
    fields: List[DisplayField] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.fields)

    def items(self) -> List[List[DisplayField]]:
        """Group fields by the payload item they came from, in order."""
        grouped: Dict[int, List[DisplayField]] = {}
        for entry in self.fields:
            grouped.setdefault(entry.item_index, []).append(entry)
        return [grouped[index] for index in sorted(grouped)]


def humanize_key(key: str) -> str:
    """``alt_mobile`` -> ``Alt Mobile``, ``fatherName`` -> ``Father Name``."""
    spaced = _CAMEL_BOUNDARY.sub(" ", key.replace("_", " "))
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split())


def normalize_address(value: str) -> str:
    """Collapse the upstream ``!``/``!!`` separators into comma-separated parts."""
    text = value.replace("!!", ", ").replace("!", ", ")
    text = _COMMA_RUN.sub(", ", text)
    return _EDGE_NOISE.sub("", text.strip())


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_displayable(value: str) -> bool:
    return bool(value) and value.strip().lower() not in _EMPTY_MARKERS


def _as_items(payload: Any) -> Sequence[Any]:
    if isinstance(payload, (list, tuple)):
        return payload
    return [payload]


def format_lookup_payload(payload: Any) -> FormattedLookup:
    """Map ``payload`` (an object or a list of objects) to display fields.

    Empty values and the upstream placeholders ``not found`` / ``[not set]``
    are dropped. Values are returned unescaped.
    """
    fields: List[DisplayField] = []
    for index, item in enumerate(_as_items(payload)):
        if not isinstance(item, Mapping):
            continue
        for key, raw_value in item.items():
            value = _stringify(raw_value)
            if not _is_displayable(value):
                continue
            normalized_key = str(key).lower()
            label, category = _KNOWN_FIELDS.get(normalized_key, (humanize_key(str(key)), CATEGORY_OTHER))
            if category == CATEGORY_ADDRESS:
                value = normalize_address(value)
                if not value:
                    continue
            fields.append(DisplayField(label=label, value=value, category=category, item_index=index))
    return FormattedLookup(fields=fields)


__all__ = [
    "CATEGORY_ADDRESS",
    "CATEGORY_IDENTITY",
    "CATEGORY_NAME",
    "CATEGORY_OTHER",
    "CATEGORY_PHONE",
    "CATEGORY_REGION",
    "DisplayField",
    "FormattedLookup",
    "format_lookup_payload",
    "humanize_key",
    "normalize_address",
]
