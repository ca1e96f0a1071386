import re
import json

_FENCED = re.compile(r'```(?:json)?\s*({[\s\S]*?})\s*```')


def extract_clean_json(raw: str | dict) -> dict:
    """
    Pull a JSON object out of an LLM response.

    Accepts an already-decoded dict, a bare JSON object, or one wrapped in a
    ```json fenced block.  Raises `ValueError` when nothing parseable is found
    so callers can decide how to degrade.
    """
    if isinstance(raw, dict):
        return raw
    if not raw or not raw.strip():
        raise ValueError("Empty response from model")

    match = _FENCED.search(raw)
    json_str = match.group(1) if match else raw.strip()

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Model response is not a JSON object")
    return data
