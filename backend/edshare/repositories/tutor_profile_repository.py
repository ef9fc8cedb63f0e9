# backend/edshare/repositories/tutor_profile_repository.py
"""
Tutor Profile Repository for the EdShare platform

Handles data access for tutor profiles with eager loading of the owning
user and subject offerings, plus the coarse geographic pre-filter used by
proximity search.
"""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.enums import VerificationStatus
from ..core.exceptions import RepositoryException
from ..database import with_db_retry
from ..models.tutor import TutorProfile
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TutorProfileRepository(BaseRepository[TutorProfile]):
    """
    Repository for tutor profile data access.

    Search candidates come back with ``user`` and ``subjects`` loaded so the
    search engine never triggers per-row lazy loads.
    """

    def __init__(self, db: Session):
        super().__init__(db, TutorProfile)
        self.logger = logging.getLogger(__name__)

    def _apply_public_visibility(self, query: Query) -> Query:
        """Restrict results to tutors eligible for search."""
        return query.filter(
            TutorProfile.verification_status == VerificationStatus.VERIFIED.value,
            TutorProfile.is_available_for_booking.is_(True),
        )

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(TutorProfile.user),
            selectinload(TutorProfile.subjects),
        )

    def get_with_subjects(self, tutor_id: str) -> Optional[TutorProfile]:
        return self.get_by_id(tutor_id, load_relationships=True)

    def get_public_profile(self, tutor_id: str) -> Optional[TutorProfile]:
        """A verified tutor with an active account, or None."""

        def _query() -> Optional[TutorProfile]:
            query = (
                self._apply_eager_loading(self.db.query(TutorProfile).join(TutorProfile.user))
                .options(selectinload(TutorProfile.availability_windows))
                .filter(
                    TutorProfile.id == tutor_id,
                    TutorProfile.verification_status == VerificationStatus.VERIFIED.value,
                    User.is_active.is_(True),
                )
            )
            return cast(Optional[TutorProfile], query.first())

        try:
            return with_db_retry("tutor_public_profile", _query)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load tutor profile %s: %s", tutor_id, str(exc))
            raise RepositoryException("Failed to load tutor profile") from exc

    def find_searchable(self) -> List[TutorProfile]:
        """All verified, bookable tutors (search without a location)."""

        def _query() -> List[TutorProfile]:
            query = self._apply_eager_loading(
                self._apply_public_visibility(self.db.query(TutorProfile).join(TutorProfile.user))
            ).filter(User.is_active.is_(True))
            return cast(List[TutorProfile], query.all())

        try:
            return with_db_retry("tutor_search_all", _query)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load search candidates: %s", str(exc))
            raise RepositoryException("Failed to load search candidates") from exc

    def find_candidates_in_box(
        self,
        min_lat: float,
        max_lat: float,
        min_lon: float,
        max_lon: float,
    ) -> List[TutorProfile]:
        """
        Verified, bookable tutors whose home coordinate lies inside the box.

        The box is a superset of the search circle; callers must re-check
        the exact distance.
        """

        def _query() -> List[TutorProfile]:
            query = self._apply_eager_loading(
                self._apply_public_visibility(self.db.query(TutorProfile).join(TutorProfile.user))
            ).filter(
                User.is_active.is_(True),
                User.latitude.isnot(None),
                User.longitude.isnot(None),
                User.latitude.between(min_lat, max_lat),
            )
            if min_lon <= max_lon:
                query = query.filter(User.longitude.between(min_lon, max_lon))
            else:
                # Box wraps the antimeridian
                query = query.filter(
                    (User.longitude >= min_lon) | (User.longitude <= max_lon)
                )
            return cast(List[TutorProfile], query.all())

        try:
            return with_db_retry("tutor_search_prefilter", _query)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load search candidates: %s", str(exc))
            raise RepositoryException("Failed to load search candidates") from exc
