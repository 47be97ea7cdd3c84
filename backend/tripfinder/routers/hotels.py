"""Hotel search router."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tripfinder.database import get_db
from tripfinder.exceptions import AuthError, Cancelled, ValidationError
from tripfinder.schemas.search import HotelSearchRequest, HotelSearchResponse, OfferResponse
from tripfinder.services.hotel_service import hotel_service
from tripfinder.services.metadata_repository import SqlHotelMetadataRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/hotels", response_model=HotelSearchResponse)
async def search_hotels(
    req: HotelSearchRequest,
    db: AsyncSession = Depends(get_db),
):
    """Search hotels around a coordinate or in a city, enriched with ratings."""
    try:
        offers = await hotel_service.search_hotels(
            req.to_query(),
            req.to_stay(),
            repository=SqlHotelMetadataRepository(db),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AuthError as e:
        logger.error(f"Hotel search aborted: {e}")
        raise HTTPException(status_code=502, detail="Failed to authenticate with the travel provider")
    except Cancelled as e:
        raise HTTPException(status_code=504, detail=str(e))

    data = []
    for offer in offers:
        item = OfferResponse.model_validate(offer)
        if not offer.has_price:
            item.price = None
        data.append(item)
    return HotelSearchResponse(data=data)
