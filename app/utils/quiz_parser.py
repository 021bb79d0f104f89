"""
Quiz Parser
Extracts, sanitizes and validates the single-question JSON returned by the LLM,
and shuffles answer options
"""
import json
import random
import re
import logging
from typing import Any, Dict, List, Optional, Tuple

from app.core.errors import MalformedJSONError, NoJSONFoundError, SchemaViolationError

logger = logging.getLogger(__name__)


REQUIRED_OPTIONS_COUNT = 4
OPTIONAL_TEXT_FIELDS = ("explanation", "topic", "domain")

# Characters that may legally follow a backslash inside a JSON string
_VALID_ESCAPES = set('"\\/bfnrt')
_HEX4 = re.compile(r"[0-9a-fA-F]{4}")
_CONTROL_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


def _strip_markdown(text: str) -> str:
    """
    Remove markdown code block formatting

    Args:
        text: Raw text possibly containing markdown

    Returns:
        Text with markdown code blocks removed
    """
    # Remove ```json ... ``` or ``` ... ```
    pattern = r"```(?:json)?\s*([\s\S]*?)\s*```"
    match = re.search(pattern, text)
    if match and "{" in match.group(1):
        return match.group(1).strip()

    # Remove standalone ``` markers
    text = re.sub(r"```", "", text)

    return text.strip()


def extract_json_object(text: str) -> str:
    """
    Extract the first brace-delimited JSON object from free text

    Scans from the first "{" to its matching "}", skipping braces inside
    string literals. If the braces never balance, falls back to the last "}".

    Args:
        text: Text containing a JSON object

    Returns:
        Extracted JSON object string

    Raises:
        NoJSONFoundError: If no brace-delimited object exists
    """
    start = text.find("{")
    if start == -1:
        raise NoJSONFoundError("No JSON object found in response")

    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    end = text.rfind("}")
    if end <= start:
        raise NoJSONFoundError("No JSON object found in response")

    return text[start:end + 1]


def sanitize_json_text(text: str) -> str:
    """
    Repair the string-literal defects LLMs commonly produce

    Inside string literals:
    - raw control characters (literal newlines, tabs...) are escaped
    - backslashes that do not start a valid JSON escape are doubled
    Outside string literals, control characters other than JSON whitespace
    are replaced with spaces.

    Args:
        text: JSON text that failed to parse

    Returns:
        Sanitized JSON text
    """
    out: List[str] = []
    in_string = False
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if in_string:
            if ch == "\\":
                nxt = text[i + 1] if i + 1 < n else ""
                if nxt == "u" and _HEX4.match(text, i + 2):
                    out.append(text[i:i + 6])
                    i += 6
                    continue
                if nxt in _VALID_ESCAPES and nxt:
                    out.append(ch + nxt)
                    i += 2
                    continue
                # Stray backslash (e.g. a Windows path or LaTeX)
                out.append("\\\\")
            elif ch == '"':
                in_string = False
                out.append(ch)
            elif ord(ch) < 0x20:
                out.append(_CONTROL_ESCAPES.get(ch, f"\\u{ord(ch):04x}"))
            else:
                out.append(ch)
        else:
            if ch == '"':
                in_string = True
                out.append(ch)
            elif ord(ch) < 0x20 and ch not in "\t\n\r":
                out.append(" ")
            else:
                out.append(ch)

        i += 1

    return "".join(out)


def validate_question_payload(data: Any) -> None:
    """
    Validate a parsed question object

    Args:
        data: Parsed JSON value

    Raises:
        SchemaViolationError: If validation fails
    """
    if not isinstance(data, dict):
        raise SchemaViolationError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    question = data.get("question")
    if not isinstance(question, str) or not question.strip():
        raise SchemaViolationError("'question' must be a non-empty string")

    options = data.get("options")
    if not isinstance(options, list):
        raise SchemaViolationError("'options' must be a list")

    if len(options) != REQUIRED_OPTIONS_COUNT:
        raise SchemaViolationError(
            f"Expected {REQUIRED_OPTIONS_COUNT} options, got {len(options)}"
        )

    for i, opt in enumerate(options):
        if not isinstance(opt, str) or not opt.strip():
            raise SchemaViolationError(f"Option {i + 1} must be a non-empty string")

    answer = data.get("correctAnswer")
    # bool is a subclass of int and must not pass as an index
    if isinstance(answer, bool) or not isinstance(answer, int):
        raise SchemaViolationError(
            f"'correctAnswer' must be an integer index. Got: {answer!r}"
        )

    if not 0 <= answer < REQUIRED_OPTIONS_COUNT:
        raise SchemaViolationError(
            f"'correctAnswer' must be between 0 and 3. Got: {answer}"
        )

    for field in OPTIONAL_TEXT_FIELDS:
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            raise SchemaViolationError(f"'{field}' must be a string")


def parse_question_json(raw_response: str) -> Dict[str, Any]:
    """
    Parse and validate a single question from an LLM response

    Attempts a direct parse of the extracted object first, then sanitizes
    and retries if the initial parse fails.

    Args:
        raw_response: Raw string response from LLM

    Returns:
        Validated question dictionary with at least:
            - question: str
            - options: List[str] (exactly 4 items)
            - correctAnswer: int (0-3)

    Raises:
        NoJSONFoundError: If the response holds no JSON object
        MalformedJSONError: If JSON cannot be parsed after sanitizing
        SchemaViolationError: If the question structure is invalid

    Example:
        >>> raw = 'Sure! {"question": "2+2?", "options": ["3","4","5","6"], "correctAnswer": 1}'
        >>> parse_question_json(raw)["correctAnswer"]
        1
    """
    if not raw_response or not raw_response.strip():
        raise NoJSONFoundError("Empty response received")

    logger.debug(f"Parsing question response ({len(raw_response)} chars)")

    candidate = extract_json_object(_strip_markdown(raw_response))

    # Attempt 1: Direct JSON parse
    try:
        data = json.loads(candidate)
        logger.debug("Direct JSON parse successful")
    except json.JSONDecodeError as e:
        logger.debug(f"Direct parse failed: {e}. Attempting sanitize...")

        # Attempt 2: Sanitize and retry
        sanitized = sanitize_json_text(candidate)
        try:
            data = json.loads(sanitized)
            logger.debug("JSON parse successful after sanitizing")
        except json.JSONDecodeError as e2:
            logger.error(f"JSON parse failed after sanitizing: {e2}")
            raise MalformedJSONError(
                f"Failed to parse JSON: {e2}. Original error: {e}"
            )

    validate_question_payload(data)

    return data


def shuffle_options(
    options: List[str],
    correct_index: int,
    rng: Optional[random.Random] = None
) -> Tuple[List[str], int]:
    """
    Shuffle answer options and track where the correct one lands

    Uses a Fisher-Yates shuffle over the option positions.

    Args:
        options: Original options
        correct_index: Index of the correct option before shuffling
        rng: Optional random generator (module random by default)

    Returns:
        Tuple of (shuffled_options, new_correct_index)
    """
    randint = (rng or random).randint
    indices = list(range(len(options)))

    for i in range(len(indices) - 1, 0, -1):
        j = randint(0, i)
        indices[i], indices[j] = indices[j], indices[i]

    shuffled = [options[i] for i in indices]
    return shuffled, indices.index(correct_index)
