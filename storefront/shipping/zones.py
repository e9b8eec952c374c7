# storefront/shipping/zones.py
from .models import EstimatedDays, ShippingMethod, ShippingRate, ShippingType, ShippingZone

WILDCARD_COUNTRY = "*"

SHIPPING_ZONES = [
    ShippingZone(
        id="fr-metro",
        name="France Métropolitaine",
        description="France continentale et Corse",
        countries=["FR"],
        display_order=1,
    ),
    ShippingZone(
        id="dom-tom",
        name="DOM-TOM",
        description="Départements et territoires d'outre-mer",
        countries=["GP", "MQ", "GF", "RE", "YT", "BL", "MF", "PM", "WF", "PF", "NC"],
        display_order=2,
    ),
    ShippingZone(
        id="europe",
        name="Europe",
        description="Union Européenne et pays limitrophes",
        countries=[
            "BE", "DE", "ES", "IT", "LU", "NL", "AT", "PT", "CH", "GB",
            "IE", "DK", "SE", "NO", "FI", "PL", "CZ", "SK", "HU", "SI",
            "HR", "RO", "BG", "GR", "CY", "MT", "EE", "LV", "LT",
        ],
        display_order=3,
    ),
    ShippingZone(
        id="international",
        name="International",
        description="Reste du monde",
        countries=[WILDCARD_COUNTRY],
        display_order=4,
    ),
]


def _method(id, name, description, carrier, type, days, zone_id):
    return ShippingMethod(
        id=id,
        name=name,
        description=description,
        carrier=carrier,
        type=type,
        estimated_days=EstimatedDays(min=days[0], max=days[1]),
        zone_id=zone_id,
    )


SHIPPING_METHODS = [
    # France Métropolitaine
    _method("fr-colissimo", "Colissimo", "Livraison standard à domicile", "La Poste",
            ShippingType.STANDARD, (2, 3), "fr-metro"),
    _method("fr-chronopost", "Chronopost", "Livraison express 24h", "Chronopost",
            ShippingType.EXPRESS, (1, 1), "fr-metro"),
    _method("fr-point-relais", "Point Relais", "Livraison en point relais", "Mondial Relay",
            ShippingType.STANDARD, (3, 5), "fr-metro"),
    # DOM-TOM
    _method("dom-colissimo", "Colissimo DOM-TOM", "Livraison outre-mer", "La Poste",
            ShippingType.STANDARD, (5, 10), "dom-tom"),
    # Europe
    _method("eu-colissimo", "Colissimo Europe", "Livraison en Europe", "La Poste",
            ShippingType.STANDARD, (4, 7), "europe"),
    _method("eu-chronopost", "Chronopost Europe", "Livraison express en Europe", "Chronopost",
            ShippingType.EXPRESS, (2, 3), "europe"),
    # International
    _method("intl-colissimo", "Colissimo International", "Livraison internationale", "La Poste",
            ShippingType.STANDARD, (7, 14), "international"),
]


def _rate(method_id, weight_from, weight_to, price, free_shipping_threshold=None):
    return ShippingRate(
        id=f"{method_id}-{weight_from}-{weight_to}g",
        method_id=method_id,
        weight_from=weight_from,
        weight_to=weight_to,
        price=price,
        free_shipping_threshold=free_shipping_threshold,
    )


# Weight brackets in grams, prices in euros
SHIPPING_RATES = [
    _rate("fr-colissimo", 0, 500, 4.95, 50),
    _rate("fr-colissimo", 500, 1000, 6.95, 50),
    _rate("fr-colissimo", 1000, 2000, 8.95, 50),
    _rate("fr-chronopost", 0, 500, 12.95),
    _rate("fr-chronopost", 500, 1000, 15.95),
    _rate("fr-point-relais", 0, 500, 3.95, 40),
    _rate("fr-point-relais", 500, 1000, 5.95, 40),
    _rate("dom-colissimo", 0, 500, 12.95),
    _rate("dom-colissimo", 500, 1000, 18.95),
    _rate("eu-colissimo", 0, 500, 8.95),
    _rate("eu-colissimo", 500, 1000, 12.95),
    _rate("eu-chronopost", 0, 500, 19.95),
    _rate("intl-colissimo", 0, 500, 15.95),
    _rate("intl-colissimo", 500, 1000, 22.95),
]

EU_COUNTRIES = [
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR", "HU", "IE",
    "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI", "ES", "SE",
]

# Country names as stored on profiles
COUNTRY_NAMES = {
    "FRANCE": "FR",
    "BELGIQUE": "BE",
    "BELGIUM": "BE",
    "SUISSE": "CH",
    "SWITZERLAND": "CH",
    "LUXEMBOURG": "LU",
    "ALLEMAGNE": "DE",
    "GERMANY": "DE",
    "ESPAGNE": "ES",
    "SPAIN": "ES",
    "ITALIE": "IT",
    "ITALY": "IT",
    "PAYS-BAS": "NL",
    "NETHERLANDS": "NL",
    "PORTUGAL": "PT",
    "ROYAUME-UNI": "GB",
    "UNITED KINGDOM": "GB",
    "GUADELOUPE": "GP",
    "MARTINIQUE": "MQ",
    "GUYANE": "GF",
    "LA REUNION": "RE",
    "LA RÉUNION": "RE",
    "REUNION": "RE",
    "MAYOTTE": "YT",
    "NOUVELLE-CALEDONIE": "NC",
    "NOUVELLE-CALÉDONIE": "NC",
    "POLYNESIE FRANCAISE": "PF",
    "POLYNÉSIE FRANÇAISE": "PF",
}
