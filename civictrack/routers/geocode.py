# File: civictrack/routers/geocode.py
from fastapi import APIRouter, Depends, HTTPException, Query
from civictrack.services.browse_session import is_valid_postal_code
from civictrack.services.geocoding import GeocodingError, NominatimGeocoder, get_geocoder

router = APIRouter(prefix="/geocode", tags=["geocode"])

INVALID_POSTAL_CODE = "Please enter a valid 6-digit postal code"

@router.get("/postal-code/{postal_code}")
def postal_code_center(postal_code: str, geo: NominatimGeocoder = Depends(get_geocoder)):
    if not is_valid_postal_code(postal_code):
        raise HTTPException(status_code=400, detail=INVALID_POSTAL_CODE)
    center, fell_back = geo.resolve_or_default(postal_code)
    return {"postal_code": postal_code, "lat": center.lat, "lng": center.lng, "fallback": fell_back}

@router.get("/address")
def address_location(
    address: str = Query(..., min_length=1, max_length=300),
    postal_code: str = Query(...),
    geo: NominatimGeocoder = Depends(get_geocoder),
):
    postal_code = postal_code.strip()
    if not is_valid_postal_code(postal_code):
        raise HTTPException(status_code=400, detail=INVALID_POSTAL_CODE)
    try:
        point = geo.locate_address(address, postal_code)
    except GeocodingError:
        raise HTTPException(status_code=404, detail="Address not found")
    return {"address": address.strip(), "postal_code": postal_code, "lat": point.lat, "lng": point.lng}

@router.get("/reverse")
def reverse(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    geo: NominatimGeocoder = Depends(get_geocoder),
):
    return {"address": geo.reverse(lat, lng)}
