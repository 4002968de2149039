import json
from datetime import datetime, timezone
from typing import Any, List, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp(timestamp: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing 'Z' so clients read the value as UTC."""
    if not timestamp:
        return None
    return timestamp.isoformat() + 'Z'


def load_json_list(raw: Optional[str]) -> List[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def dump_json_list(values) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(list(values))
