"""
JSON utilities for cleaning LLM responses.
"""

import re

_FENCE_RE = re.compile(r'```(?:json|JSON)?\s*(.*?)```', re.DOTALL)


def clean_json_response(response: str) -> str:
    """Clean LLM response by removing code block markers and surrounding prose.

    Args:
        response: Raw LLM response

    Returns:
        Cleaned JSON string (may still be invalid JSON)
    """
    response = (response or '').strip()

    # Prefer the contents of a fenced block anywhere in the response
    fenced = _FENCE_RE.search(response)
    if fenced:
        response = fenced.group(1).strip()
    else:
        # Remove unbalanced ```json and ``` markers
        if response.startswith('```json'):
            response = response[7:]
        elif response.startswith('```'):
            response = response[3:]

        if response.endswith('```'):
            response = response[:-3]
        response = response.strip()

    return extract_json_block(response)


def extract_json_block(text: str) -> str:
    """Cut text down to its outermost JSON object or array.

    Models sometimes wrap the JSON in a sentence ("Here is the result: {...}").
    Text that does not contain an opening bracket is returned unchanged.
    """
    starts = [i for i in (text.find('{'), text.find('[')) if i != -1]
    if not starts:
        return text
    start = min(starts)
    closing = '}' if text[start] == '{' else ']'
    end = text.rfind(closing)
    if end <= start:
        return text[start:]
    return text[start:end + 1]
