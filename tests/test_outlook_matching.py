"""Tests for Outlook matching-rule evaluation."""

import uuid
from types import SimpleNamespace

import pytest

from wealth_crm.core.exceptions import ValidationError
from wealth_crm.services.outlook_matching import (
    apply_rule_match,
    email_addresses,
    event_addresses,
    find_matching_rule,
    rule_matches,
    validate_rule_pattern,
)


def _rule(rule_type: str, pattern: str, entity_type: str = "household", name: str = "Rule"):
    return SimpleNamespace(
        id=uuid.uuid4(),
        name=name,
        rule_type=rule_type,
        pattern=pattern,
        entity_type=entity_type,
        entity_id=uuid.uuid4(),
    )


def _email(**overrides):
    values = {
        "from_address": "Client@SmithFamily.com",
        "to_recipients": [{"address": "advisor@firm.test", "name": "Advisor"}],
        "cc_recipients": [{"address": "cpa@taxpros.com", "name": None}, {"address": None}],
        "subject": "Q3 rebalancing",
        "household_id": None,
        "account_id": None,
        "person_id": None,
        "match_metadata": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


# =============================================================================
# Pattern validation
# =============================================================================


def test_validate_address_normalizes():
    assert validate_rule_pattern("email_address", "  Jane@Smith.COM ") == "jane@smith.com"


@pytest.mark.parametrize("pattern", ["@smith.com", "smith.com"])
def test_validate_address_needs_full_address(pattern):
    with pytest.raises(ValidationError, match="full address"):
        validate_rule_pattern("email_address", pattern)


def test_validate_domain_strips_at_sign():
    assert validate_rule_pattern("email_domain", "@SmithFamily.com") == "smithfamily.com"


@pytest.mark.parametrize("pattern", ["localhost", "jane@smith.com"])
def test_validate_domain_rejects_non_domains(pattern):
    with pytest.raises(ValidationError, match="domain like example.com"):
        validate_rule_pattern("email_domain", pattern)


def test_validate_subject_regex():
    assert validate_rule_pattern("subject_pattern", r"\bSmith\b") == r"\bSmith\b"
    with pytest.raises(ValidationError, match="Invalid subject pattern"):
        validate_rule_pattern("subject_pattern", "(unclosed")


def test_validate_rejects_blank_and_unknown_type():
    with pytest.raises(ValidationError, match="required"):
        validate_rule_pattern("email_domain", "   ")
    with pytest.raises(ValidationError, match="Unknown rule type"):
        validate_rule_pattern("phone_number", "555")


# =============================================================================
# Participants
# =============================================================================


def test_email_addresses_collects_sender_and_recipients():
    assert email_addresses(_email()) == {"client@smithfamily.com", "advisor@firm.test", "cpa@taxpros.com"}


def test_event_addresses_collects_organizer_and_attendees():
    event = SimpleNamespace(
        organizer_email="Advisor@Firm.test",
        attendees=[{"address": "jane@smith.com", "name": "Jane", "response": "accepted"}],
    )
    assert event_addresses(event) == {"advisor@firm.test", "jane@smith.com"}


# =============================================================================
# Matching
# =============================================================================


def test_address_rule_matches_exactly():
    addresses = email_addresses(_email())
    assert rule_matches(_rule("email_address", "client@smithfamily.com"), addresses, None)
    assert not rule_matches(_rule("email_address", "other@smithfamily.com"), addresses, None)


def test_domain_rule_matches_suffix_only():
    addresses = {"jane@smithfamily.com"}
    assert rule_matches(_rule("email_domain", "smithfamily.com"), addresses, None)
    assert not rule_matches(_rule("email_domain", "family.com"), addresses, None)


def test_subject_rule_is_case_insensitive():
    rule = _rule("subject_pattern", "rebalanc")
    assert rule_matches(rule, set(), "Q3 REBALANCING")
    assert not rule_matches(rule, set(), None)


def test_first_rule_in_order_wins():
    first = _rule("email_domain", "smithfamily.com", name="Domain")
    second = _rule("email_address", "client@smithfamily.com", name="Address")
    addresses = email_addresses(_email())

    assert find_matching_rule([first, second], addresses, None) is first
    assert find_matching_rule([second, first], addresses, None) is second
    assert find_matching_rule([], addresses, None) is None


def test_apply_rule_match_sets_entity_and_metadata():
    rule = _rule("email_domain", "smithfamily.com", entity_type="account", name="Smith accounts")
    email = _email()

    apply_rule_match(email, rule)

    assert email.account_id == rule.entity_id
    assert email.household_id is None
    assert email.match_metadata["matched_by"] == "rule"
    assert email.match_metadata["rule_id"] == str(rule.id)
    assert email.match_metadata["rule_name"] == "Smith accounts"
    assert email.match_metadata["confidence"] == 100
