# storefront/shipping/controller.py
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from .models import ShippingRequest, ShippingResponse
from .service import calculate_shipping, get_countries_by_zone
from .zones import SHIPPING_ZONES

router = APIRouter(prefix="/shipping", tags=["shipping"])

MISSING_PARAMETERS = "Missing parameters: country, weight and value are required"


class ShippingQuoteBody(BaseModel):
    country: Optional[str] = None
    postal_code: str = ""
    weight: Optional[float] = None
    value: Optional[float] = None


def _quote(country: Optional[str], postal_code: str, weight: Optional[float], value: Optional[float]) -> ShippingResponse:
    if not country or weight is None or value is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MISSING_PARAMETERS)

    response = calculate_shipping(ShippingRequest(
        country=country,
        postal_code=postal_code,
        weight=weight,
        value=value
    ))
    if response.errors:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=", ".join(response.errors))
    return response


@router.post("/calculate", response_model=ShippingResponse)
async def calculate_post(body: ShippingQuoteBody):
    """Shipping options for a parcel, cheapest first."""
    return _quote(body.country, body.postal_code, body.weight, body.value)


@router.get("/calculate", response_model=ShippingResponse)
async def calculate_get(
    country: Optional[str] = Query(None),
    weight: Optional[float] = Query(None),
    value: Optional[float] = Query(None),
    postal_code: str = Query("")
):
    return _quote(country, postal_code, weight, value)


@router.get("/zones")
async def list_zones():
    return {
        "zones": [zone.model_dump() for zone in sorted(SHIPPING_ZONES, key=lambda z: z.display_order)],
        "countries_by_zone": get_countries_by_zone()
    }
