"""Flight search router."""

import logging

from fastapi import APIRouter, HTTPException

from tripfinder.exceptions import AuthError, Cancelled, ValidationError
from tripfinder.schemas.search import FlightOfferResponse, FlightSearchRequest, FlightSearchResponse
from tripfinder.services.flight_service import flight_service
from tripfinder.services.json_path import DECIMAL_SENTINEL

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/flights", response_model=FlightSearchResponse)
async def search_flights(req: FlightSearchRequest):
    try:
        flights = await flight_service.search_flights(req.to_query())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AuthError as e:
        logger.error(f"Flight search aborted: {e}")
        raise HTTPException(status_code=502, detail="Failed to authenticate with the travel provider")
    except Cancelled as e:
        raise HTTPException(status_code=504, detail=str(e))

    data = []
    for flight in flights:
        item = FlightOfferResponse.model_validate(flight)
        if flight.price == DECIMAL_SENTINEL:
            item.price = None
        data.append(item)
    return FlightSearchResponse(data=data)
