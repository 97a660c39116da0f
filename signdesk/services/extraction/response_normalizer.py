"""Turn raw model text into validated work order fields and tasks.

The model's output has no enforced schema: any key may be missing,
misnamed or mistyped. Each expected field therefore has its own sanitizer
and a field that fails sanitization is simply left out, so it can never
overwrite a stored value.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from signdesk.core.config import settings
from signdesk.core.exceptions import ResponseParseError
from signdesk.database.models import TaskPriority, TaskStatus
from signdesk.utils.json_parser import parse_json_object
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)

STRING_FIELDS = ("work_order_number", "site_address", "scope_of_work")
DATE_FIELDS = ("work_order_date", "planned_date")
ARRAY_FIELDS = ("skills_required", "permits_required", "equipment_required", "materials_required")

VALID_PRIORITIES = frozenset(priority.value for priority in TaskPriority)
DEFAULT_PRIORITY = TaskPriority.MEDIUM.value

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


@dataclass
class SuggestedTask:
    name: str
    description: Optional[str] = None
    priority: str = DEFAULT_PRIORITY
    status: str = TaskStatus.PENDING.value

    def to_row(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
        }


@dataclass
class NormalizedAnalysis:
    """Parsed model output.

    Attributes:
        analysis: The parsed JSON object, stored verbatim
        fields: Column values that passed sanitization, keyed by column name
        tasks: Validated suggested tasks
    """
    analysis: Dict[str, Any]
    fields: Dict[str, Any] = field(default_factory=dict)
    tasks: List[SuggestedTask] = field(default_factory=list)


def coerce_string(value: Any) -> Optional[str]:
    """Strings and numbers as stripped text; anything else, or blank text, is None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        text = value
    elif isinstance(value, int):
        text = str(value)
    elif isinstance(value, float):
        text = str(int(value)) if value.is_integer() else str(value)
    else:
        return None
    text = text.strip()
    return text or None


def coerce_date(value: Any) -> Optional[date]:
    """Anchor-match a ``YYYY-MM-DD`` prefix; no other date formats are parsed.

    The match runs on the raw string, so leading whitespace disqualifies it.
    """
    if not isinstance(value, str):
        return None
    match = _DATE_PREFIX.match(value)
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(0))
    except ValueError:
        return None


def coerce_string_list(value: Any) -> Optional[List[str]]:
    """Only real lists; blank and non-scalar items dropped, first occurrence kept."""
    if not isinstance(value, list):
        return None
    items = (coerce_string(item) for item in value)
    return list(dict.fromkeys(item for item in items if item))


def coerce_non_negative_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        return None
    return number if number >= 0 else None


def normalize_task(entry: Any, name_max_length: int) -> Optional[SuggestedTask]:
    if not isinstance(entry, dict):
        return None
    name = coerce_string(entry.get("name"))
    if not name:
        return None
    priority = entry.get("priority")
    if not isinstance(priority, str) or priority not in VALID_PRIORITIES:
        priority = DEFAULT_PRIORITY
    return SuggestedTask(
        name=name[:name_max_length],
        description=coerce_string(entry.get("description")),
        priority=priority,
    )


def normalize(
    raw_text: str,
    preview_chars: Optional[int] = None,
    name_max_length: Optional[int] = None,
) -> NormalizedAnalysis:
    """Parse and sanitize one model response.

    Raises:
        ResponseParseError: If no JSON object can be parsed from ``raw_text``;
            carries the first ``preview_chars`` characters of the raw text
    """
    if preview_chars is None:
        preview_chars = settings.extraction.raw_response_preview_chars
    if name_max_length is None:
        name_max_length = settings.extraction.task_name_max_length

    try:
        analysis = parse_json_object(raw_text or "")
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        preview = (raw_text or "")[:preview_chars]
        LOGGER.error(f"Failed to parse AI response: {e}", extra={"raw_response": preview})
        raise ResponseParseError(raw_response=preview, original_error=e)

    fields: Dict[str, Any] = {}

    for name in STRING_FIELDS:
        value = coerce_string(analysis.get(name))
        if value is not None:
            fields[name] = value

    for name in DATE_FIELDS:
        value = coerce_date(analysis.get(name))
        if value is not None:
            fields[name] = value

    for name in ARRAY_FIELDS:
        value = coerce_string_list(analysis.get(name))
        if value is not None:
            fields[name] = value

    techs = coerce_non_negative_int(analysis.get("recommended_techs"))
    if techs is not None:
        fields["recommended_techs"] = techs

    tasks: List[SuggestedTask] = []
    suggested = analysis.get("suggested_tasks")
    if isinstance(suggested, list):
        for entry in suggested:
            task = normalize_task(entry, name_max_length)
            if task is not None:
                tasks.append(task)

    LOGGER.debug(
        "Normalized AI response",
        extra={"fields": sorted(fields), "tasks": len(tasks)},
    )
    return NormalizedAnalysis(analysis=analysis, fields=fields, tasks=tasks)
