# pocketminder/categorize.py
"""
Keyword-bag categorization of free-text descriptions.

Score of a category = total length of its keywords found (case-insensitive)
in the description; longer keywords are more specific, so they weigh more.
Ties go to the category listed first in CATEGORY_DEFINITIONS.
"""

from __future__ import annotations

from typing import Dict, List, Optional

CATEGORY_DEFINITIONS: Dict[str, dict] = {
    "food": {
        "name": "Food & Dining",
        "keywords": [
            "restaurant", "cafe", "coffee", "diner", "bistro", "food", "meal",
            "grocery", "supermarket", "market", "bakery", "pizzeria", "burger",
            "mcdonald", "starbuck", "subway", "donut", "pizza", "taco",
            "wendy", "chipotle", "kfc", "buffet", "deli", "steakhouse",
        ],
    },
    "transport": {
        "name": "Transportation",
        "keywords": [
            "gas", "fuel", "petrol", "uber", "lyft", "taxi", "cab", "bus",
            "train", "subway", "metro", "transport", "transit", "airline",
            "flight", "car rental", "parking", "toll", "mechanic", "oil change",
            "bike", "scooter", "ebike", "escooter",
        ],
    },
    "shopping": {
        "name": "Shopping",
        "keywords": [
            "amazon", "walmart", "target", "bestbuy", "store", "mall", "shop",
            "clothing", "apparel", "fashion", "dress", "shoe", "accessory",
            "jewelry", "electronic", "computer", "phone", "appliance", "ebay",
            "etsy", "retail", "outlet", "ecommerce", "online store",
        ],
    },
    "entertainment": {
        "name": "Entertainment",
        "keywords": [
            "movie", "theater", "cinema", "concert", "festival", "show",
            "ticket", "netflix", "spotify", "disney+", "hulu", "hbo",
            "apple tv", "game", "playstation", "xbox", "nintendo",
            "event", "tour", "amusement", "park", "streaming",
        ],
    },
    "housing": {
        "name": "Housing",
        "keywords": [
            "rent", "mortgage", "lease", "apartment", "condo", "house",
            "property", "real estate", "home", "maintenance", "repair",
            "improvement", "furniture", "decor", "appliance", "security",
            "landscaping", "lawn", "garden", "cleaning", "homeowner",
        ],
    },
    "utilities": {
        "name": "Utilities",
        "keywords": [
            "electric", "water", "gas", "power", "utility", "bill", "energy",
            "internet", "wifi", "broadband", "cable", "phone", "mobile",
            "cellular", "service", "provider", "waste", "garbage", "sewage",
            "subscription", "internet service",
        ],
    },
    "healthcare": {
        "name": "Healthcare",
        "keywords": [
            "doctor", "medical", "health", "hospital", "clinic", "pharmacy",
            "prescription", "medicine", "dental", "dentist", "vision", "optometrist",
            "therapy", "healthcare", "insurance", "emergency", "ambulance",
            "vitamin", "supplement", "wellness", "fitness",
        ],
    },
    "education": {
        "name": "Education",
        "keywords": [
            "tuition", "school", "college", "university", "education", "course",
            "class", "workshop", "textbook", "book", "tutorial", "training",
            "seminar", "degree", "certification", "student", "learning", "study",
            "scholarship", "loan", "academic", "educational",
        ],
    },
    "personal": {
        "name": "Personal Care",
        "keywords": [
            "salon", "spa", "haircut", "barber", "beauty", "cosmetic", "makeup",
            "skincare", "nail", "grooming", "massage", "personal care", "hygiene",
            "gym", "fitness", "wellness", "trainer", "workout", "exercise",
        ],
    },
    "income": {
        "name": "Income",
        "keywords": [
            "salary", "paycheck", "deposit", "wage", "payment", "revenue",
            "direct deposit", "income", "commission", "bonus", "refund",
            "return", "reimbursement", "dividend", "interest", "cashback",
        ],
    },
    "transfer": {
        "name": "Transfer",
        "keywords": [
            "transfer", "wire", "withdrawal", "atm", "zelle", "venmo",
            "paypal", "cash app", "deposit", "withdraw", "move money",
            "bank transfer", "funds", "cashout", "ach", "direct deposit",
        ],
    },
    "savings": {
        "name": "Savings",
        "keywords": [
            "savings", "investment", "ira", "401k", "retirement", "stock",
            "bond", "fund", "etf", "mutual fund", "brokerage", "portfolio",
            "deposit", "save", "emergency fund", "reserve", "financial goal",
        ],
    },
    "other": {
        "name": "Other",
        "keywords": ["other", "miscellaneous", "misc", "unknown", "general"],
    },
}

# never picked by score for an expense
_EXCLUDED_FROM_SCORING = ("income", "transfer")


def categorize(
    description: Optional[str], amount: object = None, is_income: bool = False
) -> str:
    """
    Return a category id for a transaction description.
    - empty description -> "other"
    - income -> "income" (no keyword search)
    - any transfer keyword -> "transfer"
    - otherwise the best-scoring category, "other" if nothing matches
    `amount` is accepted for call-site symmetry; it does not influence the result.
    """
    if not description:
        return "other"
    if is_income:
        return "income"

    text = description.lower()

    for keyword in CATEGORY_DEFINITIONS["transfer"]["keywords"]:
        if keyword in text:
            return "transfer"

    best_match = None
    best_score = 0
    for category_id, data in CATEGORY_DEFINITIONS.items():
        if category_id in _EXCLUDED_FROM_SCORING:
            continue
        score = sum(len(k) for k in data["keywords"] if k in text)
        if score > best_score:  # strict: earlier category keeps a tie
            best_score = score
            best_match = category_id

    return best_match or "other"


def suggest_categories(partial_description: Optional[str]) -> List[dict]:
    """
    Suggestions while the user is typing.
    A keyword matches if it appears in the text OR the text is a prefix/part of it.
    """
    if not partial_description:
        return []

    text = partial_description.lower()
    suggestions = []
    for category_id, data in CATEGORY_DEFINITIONS.items():
        matching = [k for k in data["keywords"] if k in text or text in k]
        score = sum(len(k) for k in matching)
        if score > 0:
            suggestions.append(
                {
                    "category_id": category_id,
                    "name": data["name"],
                    "score": score,
                    "matching_keywords": matching,
                }
            )

    # sorted() is stable, so equal scores keep enumeration order
    return sorted(suggestions, key=lambda s: s["score"], reverse=True)


def category_info(category_id: str) -> dict:
    """Name and keywords for a category id; unknown ids read as "other"."""
    return CATEGORY_DEFINITIONS.get(category_id, CATEGORY_DEFINITIONS["other"])


def all_categories() -> List[dict]:
    return [{"id": cid, "name": data["name"]} for cid, data in CATEGORY_DEFINITIONS.items()]
