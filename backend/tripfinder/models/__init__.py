from tripfinder.models.hotel_details import HotelDetails

__all__ = [
    "HotelDetails",
]
