import json
import os
import re
from typing import Optional

import groq
import structlog

from .filter_engine import FilterEngine, FilterEngineError

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = """You turn questions about a personal bank ledger into filter criteria.
Convert the user's description of the transactions they want into JSON.

The JSON must follow this schema:
{
    "criteria": [
        {"field": "one of: year, type, amount, min, max", "value": "string value"}
    ]
}

Fields:
- year: four-digit calendar year, e.g. "2022"
- type: "deposit" or "withdrawal"
- amount: exact amount, e.g. "100"
- min: smallest amount to include, e.g. "60"
- max: largest amount to include, e.g. "500"

Every criterion must hold for a transaction to match. Use an empty list to match everything.
Return ONLY valid JSON, no explanations."""

_YEAR = re.compile(r"\b((?:19|20)\d{2})\b")
_NUMBER = r"\$?\s*(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_MIN = re.compile(r"\b(?:over|above|more than|greater than|at least)\s+" + _NUMBER)
_MAX = re.compile(r"\b(?:under|below|less than|at most|up to)\s+" + _NUMBER)
_EXACT = re.compile(r"\bexactly\s+" + _NUMBER)


class LLMParser:
    def __init__(self, api_key: Optional[str] = None, engine: Optional[FilterEngine] = None):
        self.api_key = api_key or os.getenv("GROQ_API_KEY")
        self.model = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
        self.engine = engine or FilterEngine()
        self.client = None

        if self.api_key:
            self.client = groq.Groq(api_key=self.api_key)

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def parse(self, natural_language: str) -> list[str]:
        if self.client:
            return self._parse_with_groq(natural_language)
        return self._parse_locally(natural_language)

    def _parse_with_groq(self, text: str) -> list[str]:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": text}
                ],
                temperature=0.0,
                max_tokens=256
            )
        except groq.GroqError as e:
            logger.warning("llm_parse_failed", reason="api_error", error=str(e))
            return self._parse_locally(text)

        tokens = self._extract_tokens(response.choices[0].message.content or "")
        if tokens is None:
            logger.warning("llm_parse_failed", reason="bad_json")
            return self._parse_locally(text)

        try:
            self.engine.parse(tokens)
        except FilterEngineError as e:
            logger.warning("llm_parse_failed", reason="bad_criteria", error=str(e))
            return self._parse_locally(text)
        return tokens

    def _extract_tokens(self, text: str) -> Optional[list[str]]:
        json_match = re.search(r'\{[\s\S]*\}', text)
        if not json_match:
            return None
        try:
            data = json.loads(json_match.group())
        except json.JSONDecodeError:
            return None

        criteria = data.get("criteria") if isinstance(data, dict) else None
        if not isinstance(criteria, list):
            return None

        tokens = []
        for item in criteria:
            if not isinstance(item, dict) or "field" not in item or "value" not in item:
                return None
            tokens.extend([str(item["field"]), str(item["value"])])
        return tokens

    def _parse_locally(self, text: str) -> list[str]:
        text_lower = text.lower()
        tokens = []

        min_match = _MIN.search(text_lower)
        max_match = _MAX.search(text_lower)
        exact_match = None if (min_match or max_match) else _EXACT.search(text_lower)
        amount_spans = [m.span(1) for m in (min_match, max_match, exact_match) if m]

        # A number already claimed as an amount is not a year.
        for year_match in _YEAR.finditer(text_lower):
            start, end = year_match.span(1)
            if not any(start < a_end and a_start < end for a_start, a_end in amount_spans):
                tokens.extend(["year", year_match.group(1)])
                break

        if re.search(r"\bdeposit", text_lower):
            tokens.extend(["type", "deposit"])
        elif re.search(r"\bwithdr[ae]w", text_lower):
            tokens.extend(["type", "withdrawal"])

        if min_match:
            tokens.extend(["min", _amount(min_match)])
        if max_match:
            tokens.extend(["max", _amount(max_match)])
        if exact_match:
            tokens.extend(["amount", _amount(exact_match)])

        return tokens


def _amount(match: re.Match) -> str:
    return match.group(1).replace(",", "")


if __name__ == "__main__":
    import sys
    parser = LLMParser(api_key=sys.argv[1] if len(sys.argv) > 1 else None)
    print(f"Groq available: {parser.is_available}")

    test = "Show me withdrawals from 2022 over $60"
    print(json.dumps(parser.parse(test), indent=2))
