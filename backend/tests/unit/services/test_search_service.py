"""
Tests for TutorSearchService.

Covers the radius re-check, attribute filters, ordering and pagination
against tutors stored in SQLite.
"""

from datetime import time
from decimal import Decimal
import math

import pytest

from edshare.core.enums import Board, ClassLevel, SearchSortKey, TeachingMode
from edshare.core.exceptions import NotFoundException
from edshare.models.tutor import TutorAvailabilityWindow
from edshare.schemas.search import PaginationInfo, TutorSearchFilters
from edshare.services.geo import distance_km
from edshare.services.search_service import TutorSearchService, matches_teaching_mode

DELHI = (28.6139, 77.2090)


def physics(price="700.00", classes=("11", "12"), boards=("CBSE",)):
    return {
        "name": "Physics",
        "classes": list(classes),
        "boards": list(boards),
        "price_per_hour": Decimal(price),
    }


def offset_north(km: float):
    """Coordinate ``km`` north of Connaught Place."""
    return DELHI[0] + km / 111.195, DELHI[1]


@pytest.fixture
def search_service(db):
    return TutorSearchService(db)


class TestFindNearby:
    def test_physics_within_five_km_sorted_by_rating(self, make_tutor, search_service):
        lat1, lon1 = offset_north(1)
        lat2, lon2 = offset_north(3)
        lat_far, lon_far = offset_north(8)
        good = make_tutor(latitude=lat1, longitude=lon1, subjects=[physics()], rating_average=4.2)
        best = make_tutor(latitude=lat2, longitude=lon2, subjects=[physics()], rating_average=4.9)
        make_tutor(latitude=lat_far, longitude=lon_far, subjects=[physics()], rating_average=5.0)
        make_tutor(latitude=lat1, longitude=lon1)  # Mathematics only
        make_tutor(
            latitude=lat1, longitude=lon1, subjects=[physics()], verification_status="pending"
        )
        make_tutor(
            latitude=lat1, longitude=lon1, subjects=[physics()], is_available_for_booking=False
        )

        filters = TutorSearchFilters(latitude=DELHI[0], longitude=DELHI[1], radius_km=5, subject="Physics")
        ranked = search_service.find_nearby(DELHI[0], DELHI[1], 5, filters)

        assert [item.tutor.id for item in ranked] == [best.id, good.id]
        assert all(item.distance_km <= 5 for item in ranked)

    def test_radius_is_inclusive(self, make_tutor, search_service):
        # Diagonal offset keeps the point off the bounding-box edges
        lat = DELHI[0] + 3 / 111.195
        lon = DELHI[1] + 3 / (111.195 * math.cos(math.radians(DELHI[0])))
        tutor = make_tutor(latitude=lat, longitude=lon)
        exact = distance_km(DELHI[0], DELHI[1], lat, lon)

        filters = TutorSearchFilters()
        inside = search_service.find_nearby(DELHI[0], DELHI[1], exact, filters)
        outside = search_service.find_nearby(DELHI[0], DELHI[1], exact - 0.01, filters)

        assert [item.tutor.id for item in inside] == [tutor.id]
        assert outside == []

    def test_subject_match_is_exact_and_case_insensitive(self, make_tutor, search_service):
        tutor = make_tutor(subjects=[physics()])
        make_tutor(subjects=[{**physics(), "name": "Astrophysics"}])

        filters = TutorSearchFilters(subject="physics")
        ranked = search_service.find_nearby(DELHI[0], DELHI[1], 5, filters)

        assert [item.tutor.id for item in ranked] == [tutor.id]

    def test_class_and_board_must_match_same_offering(self, make_tutor, search_service):
        make_tutor(
            subjects=[
                physics(classes=["11"], boards=["ICSE"]),
                physics(classes=["12"], boards=["CBSE"]),
            ]
        )
        filters = TutorSearchFilters(
            class_level=ClassLevel.CLASS_11, board=Board.CBSE
        )
        assert search_service.find_nearby(DELHI[0], DELHI[1], 5, filters) == []

    def test_adding_filters_never_grows_results(self, make_tutor, search_service):
        make_tutor(subjects=[physics("500.00")], rating_average=3.0)
        make_tutor(subjects=[physics("900.00")], rating_average=4.8, teaching_modes=["online"])
        make_tutor(rating_average=4.0)

        loose = TutorSearchFilters()
        narrower = TutorSearchFilters(subject="Physics")
        narrowest = TutorSearchFilters(
            subject="Physics", min_rating=4.5, max_price=Decimal("1000"), teaching_mode=TeachingMode.ONLINE
        )
        sizes = [
            len(search_service.find_nearby(DELHI[0], DELHI[1], 5, f))
            for f in (loose, narrower, narrowest)
        ]
        assert sizes == sorted(sizes, reverse=True)
        assert sizes == [3, 2, 1]

    def test_max_price_compares_cheapest_matching_offering(self, make_tutor, search_service):
        tutor = make_tutor(subjects=[physics("400.00"), {**physics("1200.00"), "name": "Chemistry"}])

        cheap = TutorSearchFilters(max_price=Decimal("450"))
        too_cheap = TutorSearchFilters(max_price=Decimal("300"))

        assert [i.tutor.id for i in search_service.find_nearby(*DELHI, 5, cheap)] == [tutor.id]
        assert search_service.find_nearby(*DELHI, 5, too_cheap) == []

    def test_sort_by_price_low_breaks_ties_by_distance(self, make_tutor, search_service):
        lat_near, lon_near = offset_north(1)
        lat_far, lon_far = offset_north(2)
        far = make_tutor(latitude=lat_far, longitude=lon_far, subjects=[physics("500.00")])
        near = make_tutor(latitude=lat_near, longitude=lon_near, subjects=[physics("500.00")])
        pricey = make_tutor(latitude=lat_near, longitude=lon_near, subjects=[physics("800.00")])

        filters = TutorSearchFilters(sort_by=SearchSortKey.PRICE_LOW)
        ranked = search_service.find_nearby(*DELHI, 5, filters)

        assert [item.tutor.id for item in ranked] == [near.id, far.id, pricey.id]


class TestSearchTutors:
    def test_pagination_counts_filtered_set(self, make_tutor, search_service):
        for _ in range(5):
            make_tutor(subjects=[physics()])
        make_tutor()  # filtered out by subject

        response = search_service.search_tutors(
            TutorSearchFilters(
                latitude=DELHI[0], longitude=DELHI[1], subject="Physics", page=2, limit=2
            )
        )

        assert len(response.results) == 2
        assert response.pagination.total_count == 5
        assert response.pagination.total_pages == 3
        assert response.pagination.has_next is True
        assert response.pagination.has_prev is True

    def test_page_past_end_is_empty(self, make_tutor, search_service):
        make_tutor()
        response = search_service.search_tutors(
            TutorSearchFilters(latitude=DELHI[0], longitude=DELHI[1], page=3, limit=10)
        )
        assert response.results == []
        assert response.pagination.total_count == 1
        assert response.pagination.has_next is False

    def test_without_location_distance_is_null(self, make_tutor, search_service):
        make_tutor(latitude=None, longitude=None)
        response = search_service.search_tutors(TutorSearchFilters())

        assert len(response.results) == 1
        assert response.results[0].distance_km is None

    def test_free_text_matches_bio(self, make_tutor, search_service):
        tutor = make_tutor(bio="IIT alumnus, board exam specialist")
        make_tutor(bio="Loves geometry")

        response = search_service.search_tutors(TutorSearchFilters(search="board exam"))

        assert [r.tutor_id for r in response.results] == [tutor.id]

    def test_result_distance_is_rounded(self, make_tutor, search_service):
        lat, lon = offset_north(1.23456)
        make_tutor(latitude=lat, longitude=lon)

        response = search_service.search_tutors(
            TutorSearchFilters(latitude=DELHI[0], longitude=DELHI[1])
        )

        assert response.results[0].distance_km == round(response.results[0].distance_km, 2)


class TestTutorProfile:
    def test_profile_lists_offerings_and_weekly_windows(self, db, make_tutor, search_service):
        tutor = make_tutor(
            subjects=[physics(), physics(price="900.00", classes=("12",))], bio="IIT alumnus"
        )
        tutor.availability_windows.extend(
            [
                TutorAvailabilityWindow(day_of_week=2, start_time=time(16, 0), end_time=time(19, 0)),
                TutorAvailabilityWindow(day_of_week=0, start_time=time(9, 0), end_time=time(12, 0)),
            ]
        )
        db.commit()

        profile = search_service.get_tutor_profile(tutor.id)

        assert profile.bio == "IIT alumnus"
        assert sorted(s.price_per_hour for s in profile.subjects) == [
            Decimal("700.00"),
            Decimal("900.00"),
        ]
        assert [(w.day_of_week, w.start_time) for w in profile.weekly_availability] == [
            (0, time(9, 0)),
            (2, time(16, 0)),
        ]

    def test_unavailable_tutor_profile_is_still_public(self, make_tutor, search_service):
        tutor = make_tutor(is_available_for_booking=False)
        assert search_service.get_tutor_profile(tutor.id).is_available_for_booking is False

    @pytest.mark.parametrize("verification_status", ["pending", "rejected"])
    def test_unverified_tutor_is_not_found(self, make_tutor, search_service, verification_status):
        tutor = make_tutor(verification_status=verification_status)
        with pytest.raises(NotFoundException) as exc_info:
            search_service.get_tutor_profile(tutor.id)
        assert exc_info.value.code == "TUTOR_NOT_FOUND"

    def test_deactivated_tutor_is_not_found(self, db, make_tutor, search_service):
        tutor = make_tutor()
        tutor.user.is_active = False
        db.commit()
        with pytest.raises(NotFoundException):
            search_service.get_tutor_profile(tutor.id)


class TestFilterHelpers:
    def test_mode_both_requires_both(self, tutor):
        tutor.teaching_modes = ["online"]
        assert matches_teaching_mode(tutor, TeachingMode.ONLINE) is True
        assert matches_teaching_mode(tutor, TeachingMode.BOTH) is False

        tutor.teaching_modes = ["online", "offline"]
        assert matches_teaching_mode(tutor, TeachingMode.BOTH) is True

    def test_tutor_teaching_both_matches_any_mode(self, tutor):
        tutor.teaching_modes = ["both"]
        assert matches_teaching_mode(tutor, TeachingMode.OFFLINE) is True
        assert matches_teaching_mode(tutor, None) is True

    def test_pagination_info_for_empty_set(self):
        info = PaginationInfo.build(1, 10, 0)
        assert info.total_pages == 0
        assert info.has_next is False
        assert info.has_prev is False

    def test_coordinates_must_come_together(self):
        with pytest.raises(ValueError):
            TutorSearchFilters(latitude=DELHI[0])
