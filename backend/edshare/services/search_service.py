# backend/edshare/services/search_service.py
"""
Proximity tutor search.

Pipeline: coarse bounding-box pre-filter in the store, exact haversine
re-check (inclusive radius), attribute filters on matching subject
offerings, sort, then pagination as the final slice.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.enums import SearchSortKey, TeachingMode
from ..core.exceptions import NotFoundException
from ..models.tutor import TutorProfile, TutorSubject
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.tutor_profile_repository import TutorProfileRepository
from ..schemas.search import (
    AvailabilityWindowOut,
    PaginationInfo,
    SubjectOffering,
    TutorProfileResponse,
    TutorSearchFilters,
    TutorSearchResponse,
    TutorSearchResult,
)
from .base import BaseService
from .geo import bounding_box, distance_km, round_distance

logger = logging.getLogger(__name__)


@dataclass
class RankedTutor:
    """A tutor that survived filtering, with the values it is sorted on."""

    tutor: TutorProfile
    offerings: List[TutorSubject]
    distance_km: Optional[float]

    @property
    def min_price(self) -> Decimal:
        return min(Decimal(o.price_per_hour) for o in self.offerings)

    @property
    def max_price(self) -> Decimal:
        return max(Decimal(o.price_per_hour) for o in self.offerings)


def matching_offerings(tutor: TutorProfile, filters: TutorSearchFilters) -> List[TutorSubject]:
    """Offerings that satisfy the subject, class and board filters."""
    wanted_subject = filters.subject.lower() if filters.subject else None
    class_level = filters.class_level.value if filters.class_level else None
    board = filters.board.value if filters.board else None
    return [
        offering
        for offering in tutor.subjects
        if (wanted_subject is None or offering.name.lower() == wanted_subject)
        and offering.covers(class_level, board)
    ]


def matches_teaching_mode(tutor: TutorProfile, requested: Optional[TeachingMode]) -> bool:
    if requested is None:
        return True
    modes = set(tutor.teaching_modes or [])
    if requested == TeachingMode.BOTH:
        return TeachingMode.BOTH.value in modes or {
            TeachingMode.ONLINE.value,
            TeachingMode.OFFLINE.value,
        } <= modes
    return requested.value in modes or TeachingMode.BOTH.value in modes


def matches_free_text(tutor: TutorProfile, text: Optional[str]) -> bool:
    if not text:
        return True
    needle = text.lower()
    if tutor.bio and needle in tutor.bio.lower():
        return True
    return any(needle in offering.name.lower() for offering in tutor.subjects)


def _offering(subject: TutorSubject) -> SubjectOffering:
    return SubjectOffering(
        name=subject.name,
        classes=list(subject.classes or []),
        boards=list(subject.boards or []),
        price_per_hour=Decimal(subject.price_per_hour),
    )


def _distance_or_inf(item: RankedTutor) -> float:
    return item.distance_km if item.distance_km is not None else float("inf")


_SORT_KEYS: Dict[SearchSortKey, Callable[[RankedTutor], object]] = {
    SearchSortKey.RATING: lambda item: -float(item.tutor.rating_average or 0.0),
    SearchSortKey.PRICE_LOW: lambda item: item.min_price,
    SearchSortKey.PRICE_HIGH: lambda item: -item.max_price,
    SearchSortKey.DISTANCE: lambda item: _distance_or_inf(item),
    SearchSortKey.EXPERIENCE: lambda item: -int(item.tutor.experience_years or 0),
}


def rank(items: List[RankedTutor], sort_by: SearchSortKey) -> List[RankedTutor]:
    """Sort by the requested key; ties by distance ascending, then tutor id."""
    primary: Callable[[RankedTutor], object] = _SORT_KEYS.get(
        sort_by, _SORT_KEYS[SearchSortKey.RATING]
    )
    return sorted(items, key=lambda item: (primary(item), _distance_or_inf(item), item.tutor.id))


def paginate(items: Sequence[RankedTutor], page: int, limit: int) -> List[RankedTutor]:
    start = (page - 1) * limit
    return list(items[start : start + limit])


class TutorSearchService(BaseService):
    """Geo-proximity tutor discovery."""

    def __init__(self, db: Session, repository: Optional[TutorProfileRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_tutor_profile_repository(db)

    @BaseService.measure_operation("find_nearby")
    def find_nearby(
        self,
        searcher_lat: float,
        searcher_lon: float,
        radius_km: float,
        filters: TutorSearchFilters,
    ) -> List[RankedTutor]:
        """
        Ordered, unpaginated tutors within ``radius_km`` that pass every filter.

        Store results are a superset of the circle; each candidate's
        distance is recomputed and compared inclusively.
        """
        box = bounding_box(searcher_lat, searcher_lon, radius_km)
        candidates = self.repository.find_candidates_in_box(*box)

        survivors: List[RankedTutor] = []
        for tutor in candidates:
            if not tutor.is_searchable:
                continue
            km = distance_km(searcher_lat, searcher_lon, tutor.user.latitude, tutor.user.longitude)
            if km > radius_km:
                continue
            ranked = self._apply_filters(tutor, filters, km)
            if ranked is not None:
                survivors.append(ranked)

        return rank(survivors, filters.sort_by)

    @BaseService.measure_operation("search_tutors")
    def search_tutors(self, filters: TutorSearchFilters) -> TutorSearchResponse:
        """Search entry point used by the HTTP layer; pagination is applied last."""
        if filters.latitude is not None and filters.longitude is not None:
            ranked = self.find_nearby(
                filters.latitude, filters.longitude, filters.radius_km, filters
            )
        else:
            ranked = rank(
                [
                    item
                    for item in (
                        self._apply_filters(tutor, filters, None)
                        for tutor in self.repository.find_searchable()
                        if tutor.is_searchable
                    )
                    if item is not None
                ],
                filters.sort_by,
            )

        prometheus_metrics.observe_search_results(filters.sort_by.value, len(ranked))
        self.log_operation(
            "search_tutors",
            sort_by=filters.sort_by.value,
            has_location=filters.has_location,
            total=len(ranked),
        )

        page_items = paginate(ranked, filters.page, filters.limit)
        return TutorSearchResponse(
            results=[self._to_result(item) for item in page_items],
            pagination=PaginationInfo.build(filters.page, filters.limit, len(ranked)),
        )

    @BaseService.measure_operation("get_tutor_profile")
    def get_tutor_profile(self, tutor_id: str) -> TutorProfileResponse:
        """
        Public profile of a verified tutor, with every subject offering and
        the recurring weekly availability.

        Raises:
            NotFoundException: tutor unknown, unverified or deactivated
        """
        tutor = self.repository.get_public_profile(tutor_id)
        if tutor is None:
            raise NotFoundException("Tutor not found", code="TUTOR_NOT_FOUND")

        windows = sorted(
            tutor.availability_windows, key=lambda w: (w.day_of_week, w.start_time)
        )
        return TutorProfileResponse(
            tutor_id=tutor.id,
            user_id=tutor.user_id,
            first_name=tutor.user.first_name,
            last_name=tutor.user.last_name,
            bio=tutor.bio,
            teaching_modes=list(tutor.teaching_modes or []),
            rating_average=float(tutor.rating_average or 0.0),
            rating_count=int(tutor.rating_count or 0),
            experience_years=int(tutor.experience_years or 0),
            is_available_for_booking=bool(tutor.is_available_for_booking),
            subjects=[_offering(s) for s in tutor.subjects],
            weekly_availability=[AvailabilityWindowOut.model_validate(w) for w in windows],
        )

    def _apply_filters(
        self, tutor: TutorProfile, filters: TutorSearchFilters, km: Optional[float]
    ) -> Optional[RankedTutor]:
        offerings = matching_offerings(tutor, filters)
        if not offerings:
            return None
        if not matches_teaching_mode(tutor, filters.teaching_mode):
            return None
        if not matches_free_text(tutor, filters.search):
            return None
        if filters.min_rating is not None and float(tutor.rating_average or 0.0) < filters.min_rating:
            return None

        ranked = RankedTutor(tutor=tutor, offerings=offerings, distance_km=km)
        if filters.max_price is not None and ranked.min_price > filters.max_price:
            return None
        return ranked

    @staticmethod
    def _to_result(item: RankedTutor) -> TutorSearchResult:
        tutor = item.tutor
        return TutorSearchResult(
            tutor_id=tutor.id,
            user_id=tutor.user_id,
            first_name=tutor.user.first_name,
            last_name=tutor.user.last_name,
            bio=tutor.bio,
            teaching_modes=list(tutor.teaching_modes or []),
            rating_average=float(tutor.rating_average or 0.0),
            rating_count=int(tutor.rating_count or 0),
            experience_years=int(tutor.experience_years or 0),
            subjects=[_offering(o) for o in item.offerings],
            min_price=item.min_price,
            max_price=item.max_price,
            distance_km=round_distance(item.distance_km) if item.distance_km is not None else None,
        )

