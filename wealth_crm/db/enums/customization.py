"""Customization enums (custom fields, views, preferences)."""

from enum import Enum


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    USER = "user"
    HOUSEHOLD = "household"
    ACCOUNT = "account"


class EntityTarget(str, Enum):
    """Entity kinds that can carry custom fields, tags and saved views."""

    HOUSEHOLD = "household"
    ACCOUNT = "account"
    PERSON = "person"
    ENTITY = "entity"
    TASK = "task"
    MEETING = "meeting"
    DOCUMENT = "document"


class ViewType(str, Enum):
    TABLE = "table"
    KANBAN = "kanban"
    CALENDAR = "calendar"
    LIST = "list"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


# Groups hold plain string values so raw column values can be tested directly
TEXT_FIELD_TYPES = frozenset(
    t.value for t in (FieldType.TEXT, FieldType.TEXTAREA, FieldType.EMAIL, FieldType.PHONE, FieldType.URL)
)
NUMERIC_FIELD_TYPES = frozenset(
    t.value for t in (FieldType.NUMBER, FieldType.CURRENCY, FieldType.PERCENTAGE)
)
DATE_FIELD_TYPES = frozenset(t.value for t in (FieldType.DATE, FieldType.DATETIME))
CHOICE_FIELD_TYPES = frozenset(t.value for t in (FieldType.SELECT, FieldType.MULTI_SELECT))
REFERENCE_FIELD_TYPES = frozenset(
    t.value for t in (FieldType.USER, FieldType.HOUSEHOLD, FieldType.ACCOUNT)
)
