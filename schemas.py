"""
Database Schemas for the Portfolio CMS

Each stored model corresponds to one MongoDB collection:
- Project -> "projects"
- Skill -> "skills"
- Message -> "messages"
- Settings -> "settings" (single document, id "general")
- AboutSection -> "about" (read-only from this service)

The *Form models are the shapes the admin console edits. They keep list
fields as comma-separated strings and are turned into stored documents by
the managers.
"""
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator


def split_csv(value) -> List[str]:
    """Comma-separated text (or a list) to a list of trimmed, non-empty items."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = value
    return [p.strip() for p in parts if p and p.strip()]


# Auth
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: str
    password: str


# Content
class Project(BaseModel):
    title: str
    description: str
    technologies: List[str] = Field(default_factory=list)
    image_url: str = ""
    live_url: Optional[str] = None
    github_url: Optional[str] = None


class Skill(BaseModel):
    name: str
    category: str
    level: int = Field(5, ge=1, le=10, description="Proficiency, 1 to 10")


class Message(BaseModel):
    name: str
    email: str
    subject: str
    message: str
    created_at: str = Field(..., description="ISO-8601, set once at creation")
    read: bool = False


class AboutSection(BaseModel):
    title: str
    content: str
    image_url: Optional[str] = None


# Settings and its embedded lists
class SocialLink(BaseModel):
    id: str = ""
    platform: str = ""
    url: str = ""
    icon: Optional[str] = None


class Education(BaseModel):
    id: str = ""
    degree: str = ""
    institution: str = ""
    year: str = ""
    description: str = ""


class Certification(BaseModel):
    id: str = ""
    name: str = ""
    issuer: str = ""
    date: str = ""
    url: Optional[str] = None


class Settings(BaseModel):
    # Personal information
    full_name: str = ""
    title: str = ""
    bio: str = ""
    email: str = ""
    location: str = ""
    profile_image: str = ""

    # SEO
    site_title: str = ""
    site_description: str = ""
    keywords: List[str] = Field(default_factory=list)
    og_image: str = ""
    twitter_handle: str = ""
    custom_domain: str = ""

    # Content
    about_me: str = ""
    social_links: List[SocialLink] = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    certifications: List[Certification] = Field(default_factory=list)

    @field_validator("keywords", mode="before")
    @classmethod
    def _split_keywords(cls, v):
        return split_csv(v)


# Admin forms
class ProjectForm(BaseModel):
    title: str = ""
    description: str = ""
    technologies: str = Field("", description="Comma-separated")
    image_url: str = ""
    live_url: str = ""
    github_url: str = ""


class SkillForm(BaseModel):
    name: str = ""
    category: str = ""
    level: Union[int, str] = 5


class ContactForm(BaseModel):
    name: str = ""
    email: str = ""
    subject: str = ""
    message: str = ""
