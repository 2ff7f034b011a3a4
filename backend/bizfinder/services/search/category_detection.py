"""
Rule-based category detection for free-text business queries.

A fixed, ordered table maps each category to its trigger keywords. Detection
returns the first category (in table order) with a trigger that appears as a
substring of the lower-cased query. The same keywords are the category's
representative terms when the ranking engine looks for them in a record.

Triggers are stems where useful ("celebraci" matches celebración and
celebraciones) and avoid stems that collide with common words ("comer" would
match "comercio").
"""
from typing import Dict, List, Optional, Tuple

from bizfinder.core.logging import get_logger

logger = get_logger(__name__)

CATEGORY_FOOD = "food"
CATEGORY_EVENTS = "events"
CATEGORY_SERVICES = "services"
CATEGORY_SHOPPING = "shopping"
CATEGORY_HEALTH = "health"
CATEGORY_TECHNOLOGY = "technology"

CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    CATEGORY_FOOD: (
        "comida", "restaurant", "almuerzo", "almorzar", "desayun", "cenar",
        "pupus", "cafeter", "panader", "pizz", "food",
    ),
    CATEGORY_EVENTS: (
        "evento", "event", "fiesta", "boda", "cumpleaños", "cumpleanos",
        "quinceañera", "celebraci", "decoraci", "banquete", "flores",
        "florister", "party", "wedding",
    ),
    CATEGORY_SERVICES: (
        "servicio", "reparaci", "mantenimiento", "limpieza", "taller",
        "mecánic", "mecanic", "plomer", "electricista", "abogad", "contador",
        "service", "repair",
    ),
    CATEGORY_SHOPPING: (
        "tienda", "compra", "supermercado", "ropa", "zapat", "boutique",
        "almacén", "almacen", "ferreter", "shop", "store",
    ),
    CATEGORY_HEALTH: (
        "salud", "médic", "medic", "clínica", "clinica", "farmacia",
        "hospital", "dentist", "odontolog", "laboratorio", "health", "doctor",
    ),
    CATEGORY_TECHNOLOGY: (
        "tecnolog", "computadora", "computación", "computacion", "celular",
        "internet", "software", "electrónic", "electronic", "laptop", "technolog",
    ),
}


def detect_category(query: Optional[str]) -> Optional[str]:
    """
    Map a query to a known category.

    Returns:
        Category name, or None when no trigger keyword matches.
    """
    if not query:
        return None

    lowered = query.lower()
    for category, triggers in CATEGORY_KEYWORDS.items():
        if any(trigger in lowered for trigger in triggers):
            logger.debug("category_detected", query=query, category=category)
            return category
    return None


def get_category_terms(category: Optional[str]) -> Tuple[str, ...]:
    """Representative terms of a category (empty for unknown or None)."""
    if category is None:
        return ()
    return CATEGORY_KEYWORDS.get(category, ())


def list_categories() -> List[str]:
    return list(CATEGORY_KEYWORDS)
