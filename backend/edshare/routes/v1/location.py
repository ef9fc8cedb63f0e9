# backend/edshare/routes/v1/location.py
"""
Location routes - API v1

Endpoints:
    POST /calculate-distance  - Great-circle distances between point sets
"""

import logging

from fastapi import APIRouter, Body, Depends

from ...api.dependencies import get_current_active_user
from ...models.user import User
from ...schemas.search import DistanceMatrixRequest, DistanceMatrixResponse
from ...services.geo import distance_matrix, round_distance

logger = logging.getLogger(__name__)

router = APIRouter(tags=["location-v1"])


@router.post("/calculate-distance", response_model=DistanceMatrixResponse)
def calculate_distance(
    request: DistanceMatrixRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
) -> DistanceMatrixResponse:
    """Distances from every origin to every destination, in kilometres."""
    matrix = distance_matrix(
        [(p.latitude, p.longitude) for p in request.origins],
        [(p.latitude, p.longitude) for p in request.destinations],
    )
    return DistanceMatrixResponse(
        distances_km=[[round_distance(km) for km in row] for row in matrix]
    )
