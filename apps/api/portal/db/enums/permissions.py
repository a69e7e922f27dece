"""Role permission helper sets."""

from portal.db.enums.admin import AdminRole

# Roles that can move an application through review statuses
ROLES_CAN_SET_STATUS = {AdminRole.SUPER_ADMIN, AdminRole.OFFICER, AdminRole.CLERK}

# Roles that can read the per-application audit chain
ROLES_CAN_VIEW_AUDIT = {
    AdminRole.SUPER_ADMIN,
    AdminRole.OFFICER,
    AdminRole.CLERK,
    AdminRole.VIEW_ONLY,
}
