from datetime import date, datetime
from enum import Enum
from typing import Any, Dict

def serialize_dates(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively convert date/datetime/enum values to JSON friendly values"""
    def convert_value(value: Any) -> Any:
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        elif isinstance(value, Enum):
            return value.value
        elif isinstance(value, dict):
            return serialize_dates(value)
        elif isinstance(value, (list, tuple)):
            return [convert_value(item) for item in value]
        return value

    return {key: convert_value(value) for key, value in data.items()}
