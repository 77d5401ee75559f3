"""
Read-only views for the public site, plus the contact form.

Each page fires its fetches concurrently and waits for all of them. A failed
fetch is logged and replaced by that section's fallback so one broken
collection never blanks the whole page.
"""
import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from database import ABOUT, MESSAGES, PROJECTS, SETTINGS, SETTINGS_ID, SKILLS, DocumentStore
from errors import FetchFailure, ValidationFailure
from schemas import ContactForm, Message

logger = logging.getLogger(__name__)

FEATURED_PROJECTS = 3
TOP_SKILLS = 6


async def fetch_or(awaitable, fallback, what: str):
    try:
        return await awaitable
    except FetchFailure:
        logger.exception("Error fetching %s", what)
        return fallback


# Derived views

def featured_projects(projects: List[dict]) -> List[dict]:
    return list(projects[:FEATURED_PROJECTS])


def skill_level(skill: dict) -> float:
    """Numeric level for ordering; stored levels may be strings or missing."""
    try:
        return float(skill.get("level"))
    except (TypeError, ValueError):
        return 0


def top_skills(skills: List[dict]) -> List[dict]:
    # sorted() is stable, equal levels keep their fetch order
    return sorted(skills, key=skill_level, reverse=True)[:TOP_SKILLS]


def skill_categories(skills: List[dict]) -> List[str]:
    return list(group_skills(skills).keys())


def group_skills(skills: List[dict]) -> "OrderedDict[str, List[dict]]":
    groups = OrderedDict()
    for skill in skills:
        groups.setdefault(skill.get("category"), []).append(skill)
    return groups


def display_name(settings: Optional[dict], default: str) -> str:
    return (settings or {}).get("full_name") or default


# Pages

async def render_home(store: DocumentStore) -> Dict[str, Any]:
    settings, projects, skills = await asyncio.gather(
        fetch_or(store.get(SETTINGS, SETTINGS_ID), None, "settings"),
        fetch_or(store.list(PROJECTS), [], "projects"),
        fetch_or(store.list(SKILLS), [], "skills"),
    )
    settings = settings or {}
    return {
        "display_name": display_name(settings, "Developer"),
        "title": settings.get("title", ""),
        "bio": settings.get("bio", ""),
        "profile_image": settings.get("profile_image", ""),
        "social_links": settings.get("social_links", []),
        "featured_projects": featured_projects(projects),
        "top_skills": top_skills(skills),
    }


async def render_projects(store: DocumentStore) -> List[dict]:
    return await fetch_or(store.list(PROJECTS), [], "projects")


async def render_about(store: DocumentStore) -> Dict[str, Any]:
    skills, sections, settings = await asyncio.gather(
        fetch_or(store.list(SKILLS), [], "skills"),
        fetch_or(store.list(ABOUT), [], "about"),
        fetch_or(store.get(SETTINGS, SETTINGS_ID), None, "settings"),
    )
    settings = settings or {}
    return {
        "about_me": settings.get("about_me", ""),
        "email": settings.get("email", ""),
        "social_links": settings.get("social_links", []),
        "education": settings.get("education", []),
        "certifications": settings.get("certifications", []),
        "sections": sections,
        "skill_groups": [
            {"category": category, "skills": group}
            for category, group in group_skills(skills).items()
        ],
    }


async def render_site_header(store: DocumentStore) -> Dict[str, Any]:
    settings = await fetch_or(store.get(SETTINGS, SETTINGS_ID), None, "settings")
    return {"display_name": display_name(settings, "Portfolio")}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def submit_contact(store: DocumentStore, form: ContactForm) -> str:
    """Store a visitor's message. Every field is required; nothing is written otherwise.

    Raises ValidationFailure or WriteFailure.
    """
    values = {k: v.strip() for k, v in form.model_dump().items()}
    missing = [k for k, v in values.items() if not v]
    if missing:
        raise ValidationFailure("Please fill in: " + ", ".join(missing), missing)

    message = Message(**values, created_at=utc_now_iso(), read=False)
    message_id = await store.create(MESSAGES, message.model_dump())
    logger.info("New contact message %s from %s", message_id, message.email)
    return message_id
