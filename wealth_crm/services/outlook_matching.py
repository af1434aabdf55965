"""Matching rules that auto-tag synced Outlook mail and events to CRM entities."""

import re
from datetime import datetime, timezone
from typing import Any, Iterable

from wealth_crm.core.exceptions import ValidationError
from wealth_crm.db.enums import MatchEntityType, MatchRuleType


ENTITY_COLUMNS = {
    MatchEntityType.HOUSEHOLD.value: "household_id",
    MatchEntityType.ACCOUNT.value: "account_id",
    MatchEntityType.PERSON.value: "person_id",
}


def normalize_address(address: str | None) -> str:
    return (address or "").strip().lower()


def _recipient_addresses(recipients: Iterable[dict[str, Any]] | None) -> set[str]:
    return {
        normalize_address(recipient.get("address"))
        for recipient in recipients or []
        if recipient.get("address")
    }


def email_addresses(email) -> set[str]:
    """Sender plus to/cc recipients of a synced email."""
    addresses = _recipient_addresses(email.to_recipients) | _recipient_addresses(email.cc_recipients)
    if email.from_address:
        addresses.add(normalize_address(email.from_address))
    return addresses


def event_addresses(event) -> set[str]:
    """Organizer plus attendees of a synced event."""
    addresses = _recipient_addresses(event.attendees)
    if event.organizer_email:
        addresses.add(normalize_address(event.organizer_email))
    return addresses


def _domain(pattern: str) -> str:
    return normalize_address(pattern).lstrip("@")


def validate_rule_pattern(rule_type: str, pattern: str) -> str:
    """
    Normalize and validate a rule pattern.

    Raises:
        ValidationError: empty pattern, malformed address/domain, or a
            subject regex that does not compile
    """
    pattern = (pattern or "").strip()
    if not pattern:
        raise ValidationError("Rule pattern is required")
    if rule_type == MatchRuleType.EMAIL_ADDRESS.value:
        pattern = normalize_address(pattern)
        if "@" not in pattern or pattern.startswith("@"):
            raise ValidationError("Email address rules need a full address")
        return pattern
    if rule_type == MatchRuleType.EMAIL_DOMAIN.value:
        domain = _domain(pattern)
        if not domain or "@" in domain or "." not in domain:
            raise ValidationError("Email domain rules need a domain like example.com")
        return domain
    if rule_type == MatchRuleType.SUBJECT_PATTERN.value:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValidationError(f"Invalid subject pattern: {exc}") from exc
        return pattern
    raise ValidationError(f"Unknown rule type '{rule_type}'")


def rule_matches(rule, addresses: set[str], subject: str | None) -> bool:
    """True when the rule matches the given participants or subject."""
    if rule.rule_type == MatchRuleType.EMAIL_ADDRESS.value:
        return normalize_address(rule.pattern) in addresses
    if rule.rule_type == MatchRuleType.EMAIL_DOMAIN.value:
        suffix = "@" + _domain(rule.pattern)
        return any(address.endswith(suffix) for address in addresses)
    if rule.rule_type == MatchRuleType.SUBJECT_PATTERN.value:
        if not subject:
            return False
        try:
            return re.search(rule.pattern, subject, re.IGNORECASE) is not None
        except re.error:
            return False
    return False


def find_matching_rule(rules: Iterable, addresses: set[str], subject: str | None):
    """First matching rule; ``rules`` must already be in priority order."""
    for rule in rules:
        if rule_matches(rule, addresses, subject):
            return rule
    return None


def apply_rule_match(item, rule) -> None:
    """Tag an email or event with the rule's entity and record how it matched."""
    setattr(item, ENTITY_COLUMNS[rule.entity_type], rule.entity_id)
    item.match_metadata = {
        "matched_by": "rule",
        "rule_id": str(rule.id),
        "rule_name": rule.name,
        "confidence": 100,
        "matched_at": datetime.now(timezone.utc).isoformat(),
    }
