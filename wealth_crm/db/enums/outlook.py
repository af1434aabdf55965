"""Outlook integration enums."""

from enum import Enum


class OutlookConnectionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class MatchRuleType(str, Enum):
    EMAIL_DOMAIN = "email_domain"
    EMAIL_ADDRESS = "email_address"
    SUBJECT_PATTERN = "subject_pattern"


class MatchEntityType(str, Enum):
    HOUSEHOLD = "household"
    ACCOUNT = "account"
    PERSON = "person"


class OutlookSyncKind(str, Enum):
    EMAILS = "emails"
    CALENDAR = "calendar"
