# storefront/shipping/service.py

from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..database.core import utcnow
from ..logging import logger
from .models import (
    EstimatedDelivery, ShippingCalculation, ShippingMethod, ShippingRate, ShippingRequest,
    ShippingResponse, ShippingZone,
)
from .zones import (
    COUNTRY_NAMES, EU_COUNTRIES, SHIPPING_METHODS, SHIPPING_RATES, SHIPPING_ZONES, WILDCARD_COUNTRY,
)


def normalize_country(country: Optional[str]) -> str:
    """ISO code for a code or a known country name; unknown names pass through uppercased."""
    if not country:
        return ""
    value = country.strip().upper()
    return COUNTRY_NAMES.get(value, value)


def find_shipping_zone(country: str) -> Optional[ShippingZone]:
    """Zone listing the country, else the wildcard zone."""
    for zone in SHIPPING_ZONES:
        if country in zone.countries:
            return zone
    return next((zone for zone in SHIPPING_ZONES if WILDCARD_COUNTRY in zone.countries), None)


def get_methods_for_zone(zone_id: str) -> List[ShippingMethod]:
    return [m for m in SHIPPING_METHODS if m.zone_id == zone_id and m.is_active]


def find_shipping_rate(method_id: str, weight: float) -> Optional[ShippingRate]:
    """First bracket with ``weight_from <= weight <= weight_to``."""
    for rate in SHIPPING_RATES:
        if rate.method_id == method_id and rate.weight_from <= weight <= rate.weight_to:
            return rate
    return None


def calculate_shipping_cost(method: ShippingMethod, weight: float, order_value: float) -> Tuple[float, bool]:
    """(price, is_free) for a method. No bracket for the weight gives (0, False)."""
    rate = find_shipping_rate(method.id, weight)
    if not rate:
        return 0.0, False
    is_free = rate.free_shipping_threshold is not None and order_value >= rate.free_shipping_threshold
    return (0.0 if is_free else rate.price), is_free


def calculate_delivery_dates(method: ShippingMethod, now: Optional[datetime] = None) -> EstimatedDelivery:
    now = now or utcnow()
    return EstimatedDelivery(
        min=now + timedelta(days=method.estimated_days.min),
        max=now + timedelta(days=method.estimated_days.max),
    )


def calculate_shipping(request: ShippingRequest, clock: Callable[[], datetime] = utcnow) -> ShippingResponse:
    """Every method that can carry the parcel, cheapest first.

    Problems are reported in ``errors`` rather than raised.
    """
    errors = []
    if not request.country:
        errors.append("Country is required")
    if request.weight <= 0:
        errors.append("Invalid weight")
    if request.value < 0:
        errors.append("Invalid order value")
    if errors:
        return ShippingResponse(errors=errors)

    country = normalize_country(request.country)
    zone = find_shipping_zone(country)
    if not zone:
        return ShippingResponse(errors=["Shipping zone not found"])

    methods = get_methods_for_zone(zone.id)
    if not methods:
        return ShippingResponse(errors=["No shipping method available"])

    now = clock()
    calculations = []
    for method in methods:
        rate = find_shipping_rate(method.id, request.weight)
        if not rate:
            continue
        price, is_free = calculate_shipping_cost(method, request.weight, request.value)
        calculations.append(ShippingCalculation(
            zone=zone,
            method=method,
            rate=rate,
            price=price,
            is_free=is_free,
            estimated_delivery=calculate_delivery_dates(method, now),
        ))

    if not calculations:
        logger.info(f"No shipping rate for {request.weight}g to {country}")
        return ShippingResponse(errors=["No shipping method available for this weight"])

    # sort is stable, so equal prices keep the method order
    calculations.sort(key=lambda c: c.price)
    return ShippingResponse(available_methods=calculations, default_method=calculations[0])


def default_shipping_option(country: Optional[str], weight: float, order_value: float) -> Optional[ShippingCalculation]:
    """Cheapest option for an order, or None when no zone or bracket applies."""
    if not country or weight <= 0:
        return None
    response = calculate_shipping(ShippingRequest(country=country, weight=weight, value=order_value))
    if response.errors:
        return None
    return response.default_method


def calculate_order_weight(items: Iterable[Tuple[Optional[float], int]]) -> float:
    """Total grams for (unit weight, quantity) pairs; missing weights count as zero."""
    return sum((weight or 0) * quantity for weight, quantity in items)


def is_eu_country(country: str) -> bool:
    return normalize_country(country) in EU_COUNTRIES


def get_countries_by_zone() -> Dict[str, List[str]]:
    return {zone.id: zone.countries for zone in SHIPPING_ZONES}
