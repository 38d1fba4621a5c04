"""
External record normalizer.

Converts raw dicts from the RandomUser API into Candidate objects, and
Candidates into clean field dicts that map directly onto the Person and Lead
columns. No DB access here; the store handles persistence.

RandomUser result item (abridged):

    {
      "gender": "female",
      "name": {"title": "Ms", "first": "Ava", "last": "Lopez"},
      "location": {"street": {"number": 4121, "name": "Oak Lawn Ave"},
                   "city": "Austin", "state": "Texas", "country": "United States",
                   "postcode": 73301},
      "email": "ava.lopez@example.com",
      "login": {"uuid": "7a0eed16-9430-4d68-901f-c0d4c1c3bf00", ...},
      "dob": {"date": "1983-04-07T01:52:33.612Z", "age": 41},
      "phone": "(512) 555-0199",
      "picture": {"large": "...", "medium": "...", "thumbnail": "..."},
      "nat": "US"
    }

postcode is a number for some nationalities and a string for others.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from leadsync.models.lead import LeadSource, LeadStatus


class Candidate(BaseModel):
    """A record fetched from an external source, not yet reconciled."""

    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    external_id: Optional[str] = None
    nationality: Optional[str] = None
    picture_url: Optional[str] = None


def _street(location: Dict[str, Any]) -> Optional[str]:
    street = location.get("street")
    if isinstance(street, dict):
        parts = [str(street.get("number", "")).strip(), str(street.get("name", "")).strip()]
        return " ".join(p for p in parts if p) or None
    return street or None


def normalize_random_user(raw: Dict[str, Any]) -> Candidate:
    """
    Normalize one RandomUser ``results[]`` item into a Candidate.

    Raises:
        KeyError: if email or name is missing.
    """
    name = raw["name"]
    location = raw.get("location") or {}
    postcode = location.get("postcode")

    return Candidate(
        email=raw["email"].strip().lower(),
        first_name=name["first"],
        last_name=name["last"],
        phone=raw.get("phone"),
        street=_street(location),
        city=location.get("city"),
        state=location.get("state"),
        postcode=str(postcode) if postcode is not None else None,
        country=location.get("country"),
        date_of_birth=(raw.get("dob") or {}).get("date"),
        gender=raw.get("gender"),
        external_id=(raw.get("login") or {}).get("uuid"),
        nationality=raw.get("nat"),
        picture_url=(raw.get("picture") or {}).get("medium"),
    )


def candidate_to_person_fields(candidate: Candidate) -> Dict[str, Any]:
    """Map a Candidate onto Person columns."""
    return {
        "first_name": candidate.first_name,
        "last_name": candidate.last_name,
        "full_name": f"{candidate.first_name} {candidate.last_name}",
        "phone": candidate.phone,
        "address": {
            "street": candidate.street,
            "city": candidate.city,
            "state": candidate.state,
            "postcode": candidate.postcode,
            "country": candidate.country,
        },
        "date_of_birth": candidate.date_of_birth,
        "nationality": candidate.nationality,
        "gender": candidate.gender,
        "picture_url": candidate.picture_url,
    }


def candidate_to_lead_fields(candidate: Candidate, synced_at: datetime) -> Dict[str, Any]:
    """Map a Candidate onto Lead columns for an externally sourced lead."""
    location = ", ".join(p for p in (candidate.city, candidate.country) if p)
    return {
        "email": candidate.email,
        "external_id": candidate.external_id,
        "source": LeadSource.EXTERNAL_API,
        "status": LeadStatus.NEW,
        "synced_at": synced_at,
        "lead_metadata": {
            "location": location or None,
            "nationality": candidate.nationality,
        },
    }
