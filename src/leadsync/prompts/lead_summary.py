"""
Lead summary prompt builder.

Renders a lead and its person profile into a plain markdown brief. The
acquisition source changes the framing: a manually entered lead signals
intent, an imported one is cold.
"""
from datetime import datetime, timezone
from typing import Optional

from leadsync.models.lead import Lead, LeadSource, Person

SYSTEM_PROMPT = (
    "You are a sales assistant for a B2B team. You write short, factual lead "
    "summaries and one concrete next step. Reply with a single JSON object "
    'of the form {"summary": "...", "next_action": "..."} and nothing else.'
)


def _age(date_of_birth: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    if date_of_birth is None:
        return None
    now = now or datetime.now(timezone.utc)
    dob = date_of_birth if date_of_birth.tzinfo else date_of_birth.replace(tzinfo=timezone.utc)
    years = now.year - dob.year
    if (now.month, now.day) < (dob.month, dob.day):
        years -= 1
    return years


def _location(person: Person) -> Optional[str]:
    address = person.address or {}
    parts = [address.get("city"), address.get("state"), address.get("country")]
    return ", ".join(p for p in parts if p) or None


def build_lead_summary_prompt(lead: Lead, person: Person) -> str:
    """
    Build the user-turn prompt for a lead summary.

    Args:
        lead: The lead to summarise.
        person: The lead's person profile.

    Returns:
        Markdown string to send as the user message.
    """
    lines = ["## Lead", f"- Name: {person.full_name}", f"- Email: {lead.email}"]
    if person.phone:
        lines.append(f"- Phone: {person.phone}")
    age = _age(person.date_of_birth)
    if age is not None:
        lines.append(f"- Age: {age}")
    location = _location(person)
    if location:
        lines.append(f"- Location: {location}")
    if person.nationality:
        lines.append(f"- Nationality: {person.nationality}")
    lines.append(f"- Status: {lead.status.value}")

    lines.append("")
    lines.append("## Acquisition")
    if lead.source == LeadSource.MANUAL:
        lines.append("- Entered manually by the team (high intent).")
    else:
        lines.append("- Imported automatically from an external directory (cold).")

    lines.append("")
    lines.append("## Task")
    lines.append("1. summary: 50-300 characters on who this lead is and their potential.")
    lines.append("2. next_action: 20-150 characters, one specific engagement step.")
    return "\n".join(lines)
