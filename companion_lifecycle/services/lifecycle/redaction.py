# companion_lifecycle/services/lifecycle/redaction.py
"""
Pattern-based PII redaction for anonymized transcripts.

Rules run in order, each on the previous rule's output. Replacement tokens
are upper-case bracketed words that no rule matches, so redacting redacted
text is a no-op.

Usage:
    redact("call me on 07700 900123")           # "call me on [PHONE]"
    redact(text, rules=[*DEFAULT_RULES, my_rule])
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class RedactionRule:
    """A named pattern and the token that replaces each match."""
    name: str
    pattern: re.Pattern
    replacement: str

    @classmethod
    def compile(cls, name: str, pattern: str, replacement: str, flags: int = 0) -> "RedactionRule":
        return cls(name=name, pattern=re.compile(pattern, flags), replacement=replacement)

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


# Capitalized word sequences, sentence-initial words included. Words inside
# an email address are left for the email rule.
NAME_RULE = RedactionRule.compile(
    "name", r"(?<![\w.@])[A-Z][a-z]+(?: [A-Z][a-z]+)*\b(?![\w.%+-]*@)", "[NAME]"
)


EMAIL_RULE = RedactionRule.compile(
    "email", r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", "[EMAIL]"
)

# +44 or 0 prefix followed by 9-13 digits, optionally separated by spaces or dashes
PHONE_RULE = RedactionRule.compile("phone", r"(?:(?<!\w)\+44|\b0)(?:[\s-]?\d){9,13}\b", "[PHONE]")

POSTCODE_RULE = RedactionRule.compile(
    "postcode", r"\b[A-Z]{1,2}\d{1,2}[A-Z]?\s?\d[A-Z]{2}\b", "[POSTCODE]", re.IGNORECASE
)

ADDRESS_RULE = RedactionRule.compile(
    "address",
    r"\b\d+\s+\w+\s+(?:Street|Road|Avenue|Lane|Drive|Close|Way|Court|Place|Crescent)\b",
    "[ADDRESS]",
    re.IGNORECASE,
)

DATE_RULE = RedactionRule.compile("date", r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b", "[DATE]")

NHS_NUMBER_RULE = RedactionRule.compile("nhs_number", r"\b\d{3}[\s-]?\d{3}[\s-]?\d{4}\b", "[NHS_NUMBER]")

DEFAULT_RULES: tuple[RedactionRule, ...] = (
    NAME_RULE,
    EMAIL_RULE,
    PHONE_RULE,
    POSTCODE_RULE,
    ADDRESS_RULE,
    DATE_RULE,
    NHS_NUMBER_RULE,
)


def redact(text: str, rules: Optional[Iterable[RedactionRule]] = None) -> str:
    """Apply each rule in sequence and return the redacted text."""
    if not text:
        return text
    for rule in DEFAULT_RULES if rules is None else rules:
        text = rule.apply(text)
    return text


def find_matches(text: str, rules: Optional[Iterable[RedactionRule]] = None) -> dict[str, int]:
    """
    Count what each rule would replace, applying rules in sequence.

    Returns only rules with at least one match.
    """
    counts = {}
    if not text:
        return counts
    for rule in DEFAULT_RULES if rules is None else rules:
        text, n = rule.pattern.subn(rule.replacement, text)
        if n:
            counts[rule.name] = n
    return counts
