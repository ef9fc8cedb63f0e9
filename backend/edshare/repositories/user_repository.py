# backend/edshare/repositories/user_repository.py
"""
User Repository for the EdShare platform

Read access to the user directory owned by the identity service.
"""

import logging
from typing import Optional, cast

from sqlalchemy.orm import Session, joinedload

from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_active(self, user_id: str) -> Optional[User]:
        """Active user with the tutor profile (if any) loaded."""
        return cast(
            Optional[User],
            self.db.query(User)
            .options(joinedload(User.tutor_profile))
            .filter(User.id == user_id, User.is_active.is_(True))
            .first(),
        )
