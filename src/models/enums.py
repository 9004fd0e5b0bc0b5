from enum import Enum


class AccessCategory(str, Enum):
    PUBLIC = "public"
    GUEST = "guest"
    MEMBER = "member"
    ADMIN = "admin"


class Capability(str, Enum):
    MANAGE_USERS = "manage_users"
    EDIT_USER_NAMES = "edit_user_names"
    TOGGLE_USER_STATUS = "toggle_user_status"
    TRANSFER_BALANCE = "transfer_balance"
