"""
ChatMimic Sync Worker — LLM Field Extractor.

Turns a customer's WhatsApp message into one value per configured sheet
column using the configured LLM provider. Extraction never raises: anything
the model cannot determine, and every field when the call or the JSON parse
fails, comes back as "N/A".
"""

from __future__ import annotations

import json
import logging
import re

from chatmimic.core.llm import complete
from chatmimic.data.models import NOT_AVAILABLE, SheetColumn

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are an AI assistant specialized in extracting structured data from customer messages.
Extract ONLY the information requested for each field.
Be precise and return just the extracted information, not complete sentences.
If the information is not found in the message, return "N/A".
Format your response as valid JSON with each field ID as a key.
Respond ONLY with the JSON object. No markdown, no explanation, no extra text.
"""

_USER_PROMPT = '''\
Extract the following information from this message:
{field_prompts}

Message:
"""
{message}
"""

Return results as JSON.'''

_DEFAULT_FIELD_PROMPTS = {
    "name": "Extract the customer's name from the message. If no name is found, return \"N/A\".",
    "phone": (
        "Extract the phone number from the message. Format it as international "
        "format if possible. If no phone number is found, return \"N/A\"."
    ),
    "product": (
        "Identify any product or service the customer is interested in. "
        "If nothing specific is mentioned, return \"N/A\"."
    ),
    "inquiry": (
        "Summarize the customer's main inquiry or question in a concise manner. "
        "If there's no clear inquiry, return \"N/A\"."
    ),
    "date": "Extract any date mentioned in the message. Format as YYYY-MM-DD. If no date is found, return \"N/A\".",
}

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def field_prompt(column: SheetColumn) -> str:
    """The instruction for one column: its custom prompt, else a default for its type."""
    if column.ai_prompt.strip():
        return column.ai_prompt.strip()
    if column.type in _DEFAULT_FIELD_PROMPTS:
        return _DEFAULT_FIELD_PROMPTS[column.type]
    prompt = f"Extract {column.name} from the message."
    if column.description:
        prompt += f" ({column.description})"
    return prompt + ' If not found, return "N/A".'


def build_user_prompt(message: str, columns: list[SheetColumn]) -> str:
    field_prompts = "\n".join(f"{col.id}: {field_prompt(col)}" for col in columns)
    return _USER_PROMPT.format(field_prompts=field_prompts, message=message)


# ---------------------------------------------------------------------------
# Response handling
# ---------------------------------------------------------------------------


def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```json").removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def not_available_record(columns: list[SheetColumn]) -> dict[str, str]:
    return {col.id: NOT_AVAILABLE for col in columns}


def parse_extraction(raw_text: str, columns: list[SheetColumn]) -> dict[str, str]:
    """Parse the model's answer into a record holding every column id.

    Tolerates fenced code blocks and prose around the JSON object.
    """
    cleaned = _clean_llm_response(raw_text)
    match = _JSON_OBJECT_RE.search(cleaned)
    if match is None:
        logger.error("No JSON object in LLM extraction response — raw: '%s'", raw_text)
        return not_available_record(columns)

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse LLM extraction as JSON: %s — raw: '%s'", exc, raw_text)
        return not_available_record(columns)

    if not isinstance(data, dict):
        logger.error("LLM extraction is not a JSON object — raw: '%s'", raw_text)
        return not_available_record(columns)

    record: dict[str, str] = {}
    for col in columns:
        value = data.get(col.id)
        if value is None or (isinstance(value, str) and not value.strip()):
            record[col.id] = NOT_AVAILABLE
        elif isinstance(value, (dict, list)):
            record[col.id] = json.dumps(value, ensure_ascii=False)
        else:
            record[col.id] = str(value).strip()
    return record


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def extract_fields(message: str, columns: list[SheetColumn]) -> dict[str, str]:
    """Extract one value per column from `message`. Never raises."""
    if not columns:
        return {}

    try:
        raw = await complete(
            system=_SYSTEM_PROMPT,
            user_message=build_user_prompt(message, columns),
            max_tokens=1024,
            temperature=0.0,
        )
    except Exception as exc:
        logger.error("LLM extraction call failed: %s", exc)
        return not_available_record(columns)

    logger.debug("LLM extraction response: %s", raw)
    return parse_extraction(raw or "", columns)
