"""Role sets used by route guards."""

from wealth_crm.db.enums.auth import Role


ALL_ROLES = list(Role)

ROLES_CAN_MANAGE_FIELDS = [Role.ADMIN, Role.MANAGER]
ROLES_CAN_DELETE_FIELDS = [Role.ADMIN]
ROLES_CAN_MANAGE_TAGS = [Role.ADMIN, Role.MANAGER]
ROLES_CAN_DELETE_TAGS = [Role.ADMIN]

ROLES_CAN_VIEW_PROFITABILITY = [Role.ADMIN, Role.ADVISOR]
ROLES_CAN_VIEW_FIRM = [Role.ADMIN]

ROLES_CAN_EDIT_WORKFLOWS = [Role.ADMIN, Role.ADVISOR]
ROLES_CAN_DELETE_WORKFLOWS = [Role.ADMIN]

ROLES_CAN_MANAGE_MATCHING_RULES = [Role.ADMIN, Role.MANAGER]
