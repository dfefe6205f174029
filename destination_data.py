"""
Static destination data used when the chat assistant has to suggest concrete
places without an LLM: named attractions, restaurants and hotels per city,
plus the keyword vocabulary the fallback classifier matches against.

Everything here is immutable and injected, so tests can swap in a tiny table.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class Attraction:
    name: str
    description: str


@dataclass(frozen=True)
class Restaurant:
    name: str
    cuisine: str
    specialty: str


@dataclass(frozen=True)
class Hotel:
    name: str
    type: str  # luxury / business / budget / boutique
    description: str


@dataclass(frozen=True)
class RecommendationBundle:
    attractions: tuple[Attraction, ...]
    restaurants: tuple[Restaurant, ...]
    hotels: tuple[Hotel, ...]

    def restaurants_for(self, cuisine: Optional[str]) -> list[Restaurant]:
        """Restaurants whose cuisine contains *cuisine*; all of them when None."""
        if not cuisine:
            return list(self.restaurants)
        needle = cuisine.lower()
        return [r for r in self.restaurants if needle in r.cuisine.lower()]

    def hotels_for(self, tier: str) -> list[Hotel]:
        needle = tier.lower()
        return [h for h in self.hotels if needle in h.type.lower()]


def _bundle(attractions, restaurants, hotels) -> RecommendationBundle:
    return RecommendationBundle(
        attractions=tuple(Attraction(*a) for a in attractions),
        restaurants=tuple(Restaurant(*r) for r in restaurants),
        hotels=tuple(Hotel(*h) for h in hotels),
    )


_DESTINATIONS = {
    "ahmedabad": _bundle(
        [
            ("Sabarmati Ashram", "Gandhi's historic residence and museum"),
            ("Sidi Saiyyed Mosque", "Famous for intricate stone lattice work"),
            ("Adalaj Stepwell", "Stunning 15th-century stepwell architecture"),
            ("Kankaria Lake", "Popular recreational lake with activities"),
            ("Calico Museum", "World-renowned textile museum"),
        ],
        [
            ("Agashiye", "Gujarati", "Traditional thali on rooftop"),
            ("Swathi Snacks", "Street Food", "Famous khaman and dhokla"),
            ("Gordhan Thal", "Gujarati", "Authentic Gujarati cuisine"),
            ("Cafe Baraco", "Continental", "Coffee and continental dishes"),
        ],
        [
            ("Hyatt Regency Ahmedabad", "luxury", "Premium 5-star hotel"),
            ("Four Points by Sheraton", "business", "Modern business hotel"),
            ("Hotel Cama", "budget", "Heritage budget hotel"),
        ],
    ),
    "mumbai": _bundle(
        [
            ("Gateway of India", "Iconic monument overlooking Arabian Sea"),
            ("Marine Drive", "Famous promenade known as Queen's Necklace"),
            ("Elephanta Caves", "Ancient rock-cut caves on Elephanta Island"),
            ("Chhatrapati Shivaji Terminus", "UNESCO World Heritage railway station"),
            ("Dhobi Ghat", "World's largest outdoor laundry"),
        ],
        [
            ("Leopold Cafe", "Continental", "Historic cafe with international menu"),
            ("Trishna", "Seafood", "Contemporary Indian seafood"),
            ("Britannia & Co", "Parsi", "Authentic Parsi cuisine"),
            ("Mohammed Ali Road", "Street Food", "Famous street food hub"),
        ],
        [
            ("Taj Mahal Palace", "luxury", "Historic luxury hotel near Gateway"),
            ("The Oberoi Mumbai", "luxury", "Modern luxury with sea views"),
            ("Hotel City Palace", "budget", "Budget-friendly central location"),
        ],
    ),
    "delhi": _bundle(
        [
            ("Red Fort", "Magnificent Mughal fortress and UNESCO site"),
            ("India Gate", "War memorial and popular gathering place"),
            ("Qutub Minar", "Tallest brick minaret in the world"),
            ("Lotus Temple", "Unique lotus-shaped Bahai temple"),
            ("Chandni Chowk", "Historic market with street food"),
        ],
        [
            ("Karim's", "Mughlai", "Historic Mughlai cuisine since 1913"),
            ("Paranthe Wali Gali", "Street Food", "Famous paratha street"),
            ("Indian Accent", "Modern Indian", "Contemporary Indian fine dining"),
            ("Al Jawahar", "Mughlai", "Traditional Old Delhi flavors"),
        ],
        [
            ("The Imperial New Delhi", "luxury", "Colonial-era luxury hotel"),
            ("Hotel Tara Palace", "budget", "Budget hotel near Chandni Chowk"),
            ("Radisson Blu", "business", "Modern business hotel"),
        ],
    ),
    "paris": _bundle(
        [
            ("Eiffel Tower", "Iron lattice icon with views over the Seine"),
            ("Louvre Museum", "World's most visited art museum"),
            ("Montmartre", "Hilltop artists' village and Sacre-Coeur"),
            ("Musee d'Orsay", "Impressionist masterpieces in a former station"),
            ("Le Marais", "Historic district of mansions and boutiques"),
        ],
        [
            ("Le Bouillon Chartier", "French", "Classic bistro dishes since 1896"),
            ("L'As du Fallafel", "Middle Eastern", "Legendary falafel in the Marais"),
            ("Breizh Cafe", "French", "Buckwheat galettes and crepes"),
            ("Pink Mamma", "Italian", "Wood-fired pizza and pasta"),
        ],
        [
            ("Le Meurice", "luxury", "Palace hotel facing the Tuileries"),
            ("Hotel Malte Opera", "boutique", "Small hotel near the Opera"),
            ("Hotel du Louvre", "business", "Central hotel beside the museum"),
            ("Generator Paris", "budget", "Design hostel near Canal Saint-Martin"),
        ],
    ),
    "london": _bundle(
        [
            ("Tower of London", "Medieval fortress and home of the Crown Jewels"),
            ("British Museum", "Two million years of human history"),
            ("Westminster Abbey", "Coronation church since 1066"),
            ("Borough Market", "Historic food market by London Bridge"),
            ("Tate Modern", "Modern art in a former power station"),
        ],
        [
            ("Dishoom Covent Garden", "Indian", "Bombay cafe classics"),
            ("Poppies Fish & Chips", "British", "Traditional fish and chips"),
            ("Flat Iron", "Steak", "Affordable steak in Soho"),
            ("Bao Soho", "Taiwanese", "Steamed buns and small plates"),
        ],
        [
            ("The Savoy", "luxury", "Riverside Edwardian luxury"),
            ("The Strand Palace", "business", "Central hotel on the Strand"),
            ("Hub by Premier Inn", "budget", "Compact rooms in zone 1"),
        ],
    ),
    "rome": _bundle(
        [
            ("Colosseum", "Flavian amphitheatre of ancient Rome"),
            ("Vatican Museums", "Papal collections and the Sistine Chapel"),
            ("Pantheon", "Best-preserved temple of ancient Rome"),
            ("Trevi Fountain", "Baroque fountain in the historic centre"),
            ("Trastevere", "Cobbled streets and lively piazzas"),
        ],
        [
            ("Roscioli", "Italian", "Carbonara and cured meats"),
            ("Da Enzo al 29", "Italian", "Trastevere trattoria classics"),
            ("Pizzarium", "Pizza", "Roman pizza al taglio"),
        ],
        [
            ("Hotel de Russie", "luxury", "Garden hotel near Piazza del Popolo"),
            ("Hotel Artis", "business", "Modern rooms near Termini"),
            ("The Beehive", "budget", "Eco-friendly hostel and hotel"),
        ],
    ),
    "tokyo": _bundle(
        [
            ("Senso-ji Temple", "Tokyo's oldest temple in Asakusa"),
            ("Meiji Shrine", "Forest shrine beside Harajuku"),
            ("Shibuya Crossing", "World's busiest pedestrian scramble"),
            ("Tsukiji Outer Market", "Street food and seafood stalls"),
            ("Tokyo National Museum", "Japanese art and antiquities in Ueno"),
        ],
        [
            ("Ichiran Ramen Shibuya", "Japanese", "Tonkotsu ramen in solo booths"),
            ("Sushi Dai", "Sushi", "Omakase sushi at the market"),
            ("Tsunahachi Tempura", "Japanese", "Tempura in Shinjuku since 1924"),
        ],
        [
            ("Park Hyatt Tokyo", "luxury", "Skyline views over Shinjuku"),
            ("Shibuya Excel Hotel Tokyu", "business", "Above Shibuya station"),
            ("Capsule Hotel Anshin Oyado", "budget", "Capsule hotel with onsen"),
        ],
    ),
}


def _generic_bundle(destination: str) -> RecommendationBundle:
    return _bundle(
        [
            (f"{destination} Heritage Site", "Historic cultural landmark"),
            (f"{destination} City Center", "Main commercial and cultural hub"),
            (f"{destination} Local Market", "Traditional market experience"),
            (f"{destination} Viewpoint", "Scenic viewpoint with panoramic views"),
        ],
        [
            (f"{destination} Heritage Restaurant", "Local", "Traditional local cuisine"),
            ("Local Street Food Corner", "Street Food", "Popular local street food"),
            (f"{destination} Palace Restaurant", "Multi-cuisine", "Heritage dining experience"),
        ],
        [
            (f"{destination} Palace Hotel", "luxury", "Premium heritage hotel"),
            (f"{destination} Business Hotel", "business", "Modern business amenities"),
            (f"{destination} Budget Inn", "budget", "Clean and affordable accommodation"),
        ],
    )


class RecommendationTable:
    """Case-insensitive city -> RecommendationBundle lookup with a templated fallback."""

    def __init__(self, data: Optional[Mapping[str, RecommendationBundle]] = None):
        source = _DESTINATIONS if data is None else data
        self._data = MappingProxyType({k.strip().lower(): v for k, v in source.items()})

    def __contains__(self, city: str) -> bool:
        return city.strip().lower() in self._data

    @property
    def cities(self) -> list[str]:
        return sorted(self._data)

    def lookup(self, city: str) -> RecommendationBundle:
        key = (city or "").strip().lower()
        if key in self._data:
            return self._data[key]
        return _generic_bundle((city or "").strip() or "your destination")


# ---------------------------------------------------------------------------
# Fallback classifier vocabulary
# ---------------------------------------------------------------------------

_ATTRACTION_DESCRIPTIONS = {
    "taj mahal": "UNESCO World Heritage Site and symbol of love",
    "red fort": "Historic Mughal fortress in Delhi",
    "gateway of india": "Iconic Mumbai monument",
    "lotus temple": "Unique lotus-shaped Bahai temple",
    "museum": "Cultural heritage and artifacts",
    "cathedral": "Historic religious architecture",
    "palace": "Royal heritage and architecture",
    "temple": "Spiritual and architectural significance",
    "fort": "Historic defense structure",
    "beach": "Coastal recreation and relaxation",
    "park": "Natural beauty and recreation",
    "market": "Local culture and shopping experience",
}

_REGION_GROUPS = {
    "north_america": ("usa", "united states", "america", "canada"),
    "south_asia": ("india", "asia", "sri lanka", "nepal"),
    "europe": ("europe", "uk", "france", "germany", "italy", "spain"),
    "oceania": ("australia", "new zealand"),
}


@dataclass(frozen=True)
class ClassifierVocabulary:
    """Keyword tables and thresholds for the deterministic classifier.

    The feasibility thresholds and region table are illustrative defaults.
    """

    add_keywords: tuple[str, ...] = (
        "add", "include", "visit", "go to", "see", "try", "want to",
    )
    change_keywords: tuple[str, ...] = (
        "change", "replace", "instead of", "switch", "different", "upgrade",
    )
    remove_keywords: tuple[str, ...] = (
        "remove", "skip", "don't want", "cancel", "delete",
    )
    swap_keywords: tuple[str, ...] = (
        "swap", "exchange", "switch", "move", "transfer",
    )
    swap_patterns: tuple[str, ...] = (
        r"swap.*day\s*(\d+).*day\s*(\d+)",
        r"exchange.*day\s*(\d+).*day\s*(\d+)",
        r"switch.*day\s*(\d+).*day\s*(\d+)",
        r"move.*day\s*(\d+).*day\s*(\d+)",
        r"day\s*(\d+).*activities.*day\s*(\d+)",
        r"day\s*(\d+).*with.*day\s*(\d+)",
    )
    swap_everything_phrases: tuple[str, ...] = ("everything", "entire day", "whole day")
    whole_day_phrases: tuple[str, ...] = ("whole day", "entire day", "full day")
    landmarks: tuple[str, ...] = (
        "Taj Mahal", "Red Fort", "Gateway of India", "Lotus Temple", "Qutub Minar",
        "India Gate", "Hawa Mahal", "City Palace", "Amber Fort", "Eiffel Tower",
        "Big Ben", "Statue of Liberty", "Times Square", "Central Park", "Louvre",
        "Colosseum", "Vatican", "Sagrada Familia", "Brandenburg Gate", "museum",
        "cathedral", "palace", "temple", "fort", "beach", "park", "market",
    )
    cuisines: tuple[str, ...] = (
        "Italian", "Chinese", "Indian", "Mexican", "Japanese", "Thai", "French",
        "Mediterranean", "Korean", "Vietnamese", "American", "British", "German",
        "Spanish", "Greek", "Turkish", "Lebanese", "Moroccan", "Ethiopian",
        "pizza", "pasta", "sushi", "curry", "noodles", "burger", "steak",
    )
    food_words: tuple[str, ...] = ("restaurant", "food", "eat", "breakfast", "lunch", "dinner")
    hotel_types: tuple[str, ...] = (
        "luxury", "budget", "boutique", "business", "resort", "hostel",
        "villa", "apartment", "5 star", "4 star", "3 star", "cheap", "expensive",
    )
    hotel_words: tuple[str, ...] = ("hotel", "accommodation")
    transport_words: tuple[str, ...] = (
        "transport", "taxi", "cab", "metro", "bus", "train", "car", "uber",
        "rickshaw", "subway", "bike",
    )
    travel_words: tuple[str, ...] = ("travel", "fly", "flight", "get to", "reach")
    attraction_descriptions: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_ATTRACTION_DESCRIPTIONS))
    )
    region_groups: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType(dict(_REGION_GROUPS))
    )
    distant_region_pairs: frozenset = frozenset({
        frozenset({"north_america", "south_asia"}),
        frozenset({"north_america", "oceania"}),
        frozenset({"europe", "oceania"}),
    })
    luxury_budget_floor: int = 100

    def describe_attraction(self, name: str) -> str:
        lower = name.lower()
        for key, description in self.attraction_descriptions.items():
            if key in lower:
                return description
        return "Popular local attraction"

    @staticmethod
    def hotel_tier(text: str) -> str:
        lower = text.lower()
        if any(w in lower for w in ("luxury", "5 star", "5-star", "premium")):
            return "luxury"
        if any(w in lower for w in ("budget", "cheap", "economy", "hostel")):
            return "budget"
        if "boutique" in lower:
            return "boutique"
        if "business" in lower:
            return "business"
        return "mid-range"

    @staticmethod
    def meal_slot(text: str) -> str:
        lower = text.lower()
        if "breakfast" in lower or "morning" in lower:
            return "breakfast"
        if "lunch" in lower or "afternoon" in lower:
            return "lunch"
        if "dinner" in lower or "evening" in lower:
            return "dinner"
        return "lunch"

    def regions_in(self, text: str) -> dict[str, str]:
        """Map region group -> first matching term found in *text* (lower-cased)."""
        found = {}
        for group, terms in self.region_groups.items():
            for term in terms:
                if re.search(rf"\b{re.escape(term)}\b", text):
                    found[group] = term
                    break
        return found


DEFAULT_RECOMMENDATIONS = RecommendationTable()
DEFAULT_VOCABULARY = ClassifierVocabulary()
