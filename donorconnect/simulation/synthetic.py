"""
Synthetic donor and activity generation for the in-process simulation.

Records are plain dicts in the same shape the remote generator returns,
so consumers never need to know which backend produced them.
"""

import random
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

FIRST_NAMES = [
    "Emma", "Liam", "Olivia", "Noah", "Ava", "Ethan", "Sophia", "Mason",
    "Isabella", "William", "Mia", "James", "Charlotte", "Oliver", "Amelia",
    "Benjamin", "Harper", "Elijah", "Evelyn", "Lucas", "Abigail", "Michael",
]

LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller",
    "Davis", "Rodriguez", "Martinez", "Wilson", "Anderson", "Thomas",
    "Taylor", "Moore", "Jackson", "Martin", "Lee", "Thompson", "White",
]

CITIES = [
    ("New York", "NY"), ("Chicago", "IL"), ("Houston", "TX"), ("Phoenix", "AZ"),
    ("Philadelphia", "PA"), ("San Diego", "CA"), ("Austin", "TX"), ("Seattle", "WA"),
    ("Denver", "CO"), ("Boston", "MA"), ("Nashville", "TN"), ("Portland", "OR"),
]

EMPLOYERS = [
    "Local Hospital", "City School District", "State University",
    "Community Bank", "Regional Medical Center", "Tech Startup Inc",
]

INTERESTS = [
    "education", "youth programs", "health", "environment",
    "arts", "housing", "food security", "animal welfare",
]

DONOR_STATUSES = ["ACTIVE", "LYBUNT", "SYBUNT"]
COMMUNICATION_METHODS = ["email", "phone_call"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_donor(realism: float = 0.7, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Generate one synthetic donor.

    A *realism* of 0.5 or more adds employer, interests and giving history.
    """
    rng = rng or random.Random()
    first = rng.choice(FIRST_NAMES)
    last = rng.choice(LAST_NAMES)
    city, state = rng.choice(CITIES)
    donor: Dict[str, Any] = {
        "id": f"sim_{uuid.UUID(int=rng.getrandbits(128)).hex[:12]}",
        "firstName": first,
        "lastName": last,
        "email": f"{first.lower()}.{last.lower()}{rng.randint(1, 999)}@example.org",
        "phone": f"555-{rng.randint(100, 999)}-{rng.randint(1000, 9999)}",
        "city": city,
        "state": state,
        "status": rng.choice(DONOR_STATUSES),
        "isSimulated": True,
    }
    if realism >= 0.5:
        gifts = rng.randint(0, 12)
        donor.update({
            "employer": rng.choice(EMPLOYERS),
            "interests": rng.sample(INTERESTS, k=rng.randint(1, 3)),
            "totalGifts": gifts,
            "totalGiven": round(sum(rng.uniform(25, 2500) for _ in range(gifts)), 2),
        })
    return donor


def generate_donors(
    count: int,
    realism: float = 0.7,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    if count < 0:
        raise ValueError("count must be >= 0")
    rng = rng or random.Random()
    return [generate_donor(realism, rng) for _ in range(count)]


def donor_name(donor: Dict[str, Any]) -> str:
    return f"{donor.get('firstName', '')} {donor.get('lastName', '')}".strip()


def generate_activity(
    kind: str,
    donor: Dict[str, Any],
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Build the event payload for one simulated activity of *kind*.

    *kind* is an ``EventType`` value: donation, communication, engagement,
    profile_update or status_change.
    """
    rng = rng or random.Random()
    base = {
        "id": f"act_{uuid.UUID(int=rng.getrandbits(128)).hex[:12]}",
        "donorId": donor.get("id"),
        "donorName": donor_name(donor),
        "date": _now(),
        "simulated": True,
    }
    if kind == "donation":
        base.update({"amount": rng.randint(100, 5100), "campaign": "General Fund"})
    elif kind == "communication":
        base.update({
            "method": rng.choice(COMMUNICATION_METHODS),
            "direction": "outbound",
            "subject": "Update from our organization",
        })
    elif kind == "engagement":
        base.update({"activity": "attended_event"})
    elif kind == "profile_update":
        base.update({"field": "contact_info"})
    elif kind == "status_change":
        base.update({"newStatus": rng.choice(DONOR_STATUSES)})
    else:
        raise ValueError(f"Unknown activity kind: {kind!r}")
    return base
