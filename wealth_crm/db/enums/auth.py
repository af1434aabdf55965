"""Authentication enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles.

    - ADMIN: firm administrator (firm-wide analytics, field and tag deletion)
    - MANAGER: practice manager (custom fields, tags, matching rules)
    - ADVISOR: client-facing advisor (own book, profitability, workflow templates)
    - OPERATIONS: operations staff
    - COMPLIANCE: compliance officer
    """

    ADMIN = "admin"
    MANAGER = "manager"
    ADVISOR = "advisor"
    OPERATIONS = "operations"
    COMPLIANCE = "compliance"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
