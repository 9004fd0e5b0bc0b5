import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from flow_engine import AccessManaging
from models.enums import AccessCategory, Capability

logger = logging.getLogger(__name__)

CATEGORY_CAPABILITIES: Dict[AccessCategory, FrozenSet[Capability]] = {
    AccessCategory.PUBLIC: frozenset(),
    AccessCategory.GUEST: frozenset({Capability.MANAGE_USERS}),
    AccessCategory.MEMBER: frozenset({Capability.MANAGE_USERS, Capability.TRANSFER_BALANCE}),
    AccessCategory.ADMIN: frozenset(Capability),
}


class FakeAccessManager(AccessManaging):
    """
    Capability checks backed by an in-memory user -> access category map.

    Users without an explicit category get ``default_category``. Every granted
    action is written to the audit log and kept in ``audit_log``.
    """

    def __init__(
        self,
        default_category: AccessCategory = AccessCategory.MEMBER,
        user_categories: Optional[Dict[int, AccessCategory]] = None,
        admin_user_ids: Iterable[int] = (),
    ):
        self.default_category = default_category
        self.user_categories: Dict[int, AccessCategory] = dict(user_categories or {})
        for user_id in admin_user_ids:
            self.user_categories[user_id] = AccessCategory.ADMIN
        self.audit_log: List[Tuple[int, str]] = []

    def category_for(self, user_id: int) -> AccessCategory:
        return self.user_categories.get(user_id, self.default_category)

    def set_access(self, user_id: int, category: AccessCategory) -> None:
        self.user_categories[user_id] = category

    async def check_capability(self, user_id: int, action: str) -> bool:
        try:
            capability = Capability(action)
        except ValueError:
            logger.warning(f"Unknown capability '{action}' requested for user {user_id}")
            return False
        return capability in CATEGORY_CAPABILITIES[self.category_for(user_id)]

    async def log_access(self, user_id: int, action: str) -> None:
        logger.info(f"[AUDIT] User {user_id} ({self.category_for(user_id).value}) performed action: {action}")
        self.audit_log.append((user_id, action))
