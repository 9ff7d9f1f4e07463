"""
Sanitize, parse and validate raw model output into typed records.

Every function raises ResponseParseError on malformed output, so callers
only need to handle one failure type.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

from ..models.core import DIFFICULTIES, AIConnection, AIResponse, TopicValidation
from ..utils.json_utils import clean_json_response


class ResponseParseError(Exception):
    """Raised when model output cannot be turned into the expected record."""
    pass


def load_json_object(text: str) -> Dict[str, Any]:
    """Strip wrapping noise and parse the response as a JSON object."""
    cleaned = clean_json_response(text)
    if not cleaned:
        raise ResponseParseError('Empty response from model')
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f'Response is not valid JSON: {e}')
    if not isinstance(data, dict):
        raise ResponseParseError(f'Expected a JSON object, got {type(data).__name__}')
    return data


def parse_exploration_response(text: str,
                               expected_connections: Optional[int] = None,
                               exclude_titles: Iterable[str] = ()) -> AIResponse:
    """
    Parse an exploration answer.

    Args:
        text: Raw model output
        expected_connections: Exact number of connections required; None accepts one or more
        exclude_titles: Titles to drop case-insensitively (already explored concepts)

    Returns:
        Validated AIResponse

    Raises:
        ResponseParseError: If a field is missing or has the wrong type
    """
    data = load_json_object(text)

    summary = data.get('summary')
    if not isinstance(summary, str) or not summary.strip():
        raise ResponseParseError('Field "summary" must be a non-empty string')

    raw_connections = data.get('connections')
    if not isinstance(raw_connections, list):
        raise ResponseParseError('Field "connections" must be a list')
    if expected_connections is not None and len(raw_connections) != expected_connections:
        raise ResponseParseError(f'Expected exactly {expected_connections} connections, got {len(raw_connections)}')

    excluded = {title.strip().casefold() for title in exclude_titles}
    connections = []
    for index, item in enumerate(raw_connections):
        connection = _parse_connection(item, index)
        if connection.title.casefold() in excluded:
            continue
        connections.append(connection)
    if expected_connections is None and not connections:
        raise ResponseParseError('No new connections in response')

    keywords = data.get('keywords', [])
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        raise ResponseParseError('Field "keywords" must be a list of strings')

    difficulty = data.get('difficulty')
    if not isinstance(difficulty, str) or difficulty.strip().lower() not in DIFFICULTIES:
        raise ResponseParseError(f'Field "difficulty" must be one of {", ".join(DIFFICULTIES)}')

    reading_time = data.get('estimatedReadingTime')
    if isinstance(reading_time, bool) or not isinstance(reading_time, (int, float)) or reading_time < 0:
        raise ResponseParseError('Field "estimatedReadingTime" must be a non-negative number')

    return AIResponse(summary=summary.strip(),
                      connections=connections,
                      keywords=[k.strip() for k in keywords if k.strip()],
                      difficulty=difficulty.strip().lower(),
                      estimated_reading_time=int(round(reading_time)))


def _parse_connection(item: Any, index: int) -> AIConnection:
    if not isinstance(item, dict):
        raise ResponseParseError(f'Connection {index} must be an object')

    values = {}
    for key in ('title', 'description', 'relationship'):
        value = item.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ResponseParseError(f'Connection {index} field "{key}" must be a non-empty string')
        values[key] = value.strip()

    confidence = item.get('confidence')
    try:
        confidence = float(confidence)
    except (TypeError, ValueError):
        raise ResponseParseError(f'Connection {index} field "confidence" must be a number')
    confidence = min(1.0, max(0.0, confidence))

    return AIConnection(confidence=confidence, **values)


def parse_validation_response(text: str, original_input: str) -> TopicValidation:
    """Parse a topic validation answer."""
    data = load_json_object(text)

    is_valid = data.get('isValid')
    if not isinstance(is_valid, bool):
        raise ResponseParseError('Field "isValid" must be a boolean')

    cleaned = data.get('cleanedTopic')
    if not isinstance(cleaned, str) or not cleaned.strip():
        cleaned = original_input.strip() if is_valid else None
    else:
        cleaned = cleaned.strip()

    reason = data.get('reason')
    if not isinstance(reason, str) or not reason.strip():
        reason = None

    return TopicValidation(is_valid=is_valid,
                           cleaned_topic=cleaned,
                           reason=None if is_valid else (reason or 'Not an explorable topic'),
                           suggestions=_string_list(data.get('suggestions'), 'suggestions'))


def parse_suggestion_response(text: str) -> List[str]:
    """Parse a topic suggestion answer; a bare JSON array is accepted too."""
    cleaned = clean_json_response(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f'Response is not valid JSON: {e}')
    if isinstance(data, dict):
        data = data.get('suggestions')
    suggestions = _string_list(data, 'suggestions')
    if not suggestions:
        raise ResponseParseError('No suggestions in response')
    return suggestions


def _string_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ResponseParseError(f'Field "{name}" must be a list of strings')
    return [v.strip() for v in value if v.strip()]
