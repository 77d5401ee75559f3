"""
Admin-side state for each editable collection.

A manager lives for one admin page view. It mirrors one collection in
`items`, keeps the form the operator is editing, and after every successful
write it re-reads the collection instead of patching `items` locally, so the
list always shows what the store actually holds.

Failures never escape a manager operation: they are logged, turned into a
notification for the operator, and the method returns False. The previous
`items` and the current form are left as they were so the operator can retry.

There is no locking or versioning. Two operators editing the same document
overwrite each other (last write wins).
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from pydantic import ValidationError

from database import MESSAGES, PROJECTS, SETTINGS, SETTINGS_ID, SKILLS, DocumentStore
from errors import FetchFailure, PortfolioError, ValidationFailure, WriteFailure
from schemas import (
    Certification,
    Education,
    Project,
    ProjectForm,
    Settings,
    Skill,
    SkillForm,
    SocialLink,
    split_csv,
)

logger = logging.getLogger(__name__)

LEVEL_MIN = 1
LEVEL_MAX = 10


class Notification(NamedTuple):
    level: str  # "success" | "error"
    text: str


def is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_fields(values: Dict[str, Any], required) -> List[str]:
    return [f for f in required if is_blank(values.get(f))]


def drop_none(value):
    """Strip null fields (recursively) so model defaults apply to them."""
    if isinstance(value, dict):
        return {k: drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [drop_none(v) for v in value if v is not None]
    return value


def clamp_level(value) -> int:
    """Skill levels are clamped into [1, 10]; non-numbers are rejected."""
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise ValidationFailure("Level must be a whole number", ["level"])
    return max(LEVEL_MIN, min(LEVEL_MAX, level))


class PageState:
    """Notification and error bookkeeping shared by every admin page."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.pending = False
        self.notifications: List[Notification] = []
        self.error: Optional[PortfolioError] = None

    def notify(self, level: str, text: str):
        self.notifications.append(Notification(level, text))

    def fail(self, exc: PortfolioError, text: str):
        self.error = exc
        self.notify("error", text)


class CollectionManager(PageState):
    """List mirror of one collection with load and confirmed delete."""

    collection: str = ""
    entity_name = "Item"
    plural = "items"
    filter_dict: Optional[Dict[str, Any]] = None
    order_by: Optional[Tuple[str, str]] = None

    def __init__(self, store: DocumentStore):
        super().__init__(store)
        self.items: List[Dict[str, Any]] = []

    def find(self, item_id: str) -> Optional[Dict[str, Any]]:
        for item in self.items:
            if item.get("id") == item_id:
                return item
        return None

    async def load(self) -> bool:
        self.pending = True
        try:
            self.items = await self.store.list(self.collection, self.filter_dict, self.order_by)
            return True
        except FetchFailure as e:
            logger.exception("Error fetching %s", self.plural)
            self.fail(e, f"Failed to fetch {self.plural}")
            return False
        finally:
            self.pending = False

    async def remove(self, item_id: str, confirm: Callable[[str], bool]) -> bool:
        name = self.entity_name.lower()
        if not confirm(f"Are you sure you want to delete this {name}?"):
            return False
        try:
            await self.store.delete(self.collection, item_id)
        except WriteFailure as e:
            logger.exception("Error deleting %s %s", name, item_id)
            self.fail(e, f"Failed to delete {name}")
            return False
        self.notify("success", f"{self.entity_name} deleted successfully")
        await self.load()
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "pending": self.pending,
            "notifications": [n._asdict() for n in self.notifications],
        }


class EntityCrudManager(CollectionManager):
    """Collection mirror plus a create/edit form.

    Subclasses declare the form model, the required fields and how to map
    between a stored document and the editable form.
    """

    form_model = None
    required_fields: Tuple[str, ...] = ()

    def __init__(self, store: DocumentStore):
        super().__init__(store)
        self.selected: Optional[Dict[str, Any]] = None
        self.form_values: Dict[str, Any] = self.empty_form()

    def empty_form(self) -> Dict[str, Any]:
        return self.form_model().model_dump()

    def to_form(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        form = self.empty_form()
        for key in form:
            if entity.get(key) is not None:
                form[key] = entity[key]
        return form

    def to_document(self, form: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def select_for_edit(self, entity: Dict[str, Any]):
        self.selected = entity
        self.form_values = self.to_form(entity)

    def reset_form(self):
        self.selected = None
        self.form_values = self.empty_form()

    def validate(self, form: Dict[str, Any]):
        missing = missing_fields(form, self.required_fields)
        if missing:
            raise ValidationFailure("Please fill in: " + ", ".join(missing), missing)

    async def submit(self, form_values: Optional[Dict[str, Any]] = None) -> bool:
        if form_values is not None:
            self.form_values = {**self.form_values, **form_values}
        name = self.entity_name.lower()

        try:
            self.validate(self.form_values)
            document = self.to_document(self.form_values)
        except ValidationFailure as e:
            self.fail(e, str(e))
            return False

        self.pending = True
        try:
            if self.selected is not None:
                await self.store.update(self.collection, self.selected["id"], document)
                self.notify("success", f"{self.entity_name} updated successfully")
            else:
                await self.store.create(self.collection, document)
                self.notify("success", f"{self.entity_name} added successfully")
        except WriteFailure as e:
            logger.exception("Error saving %s", name)
            self.fail(e, f"Failed to save {name}")
            return False
        finally:
            self.pending = False

        self.reset_form()
        await self.load()
        return True

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["selected"] = self.selected["id"] if self.selected else None
        data["form"] = self.form_values
        return data


class ProjectManager(EntityCrudManager):
    collection = PROJECTS
    entity_name = "Project"
    plural = "projects"
    form_model = ProjectForm
    required_fields = ("title", "description", "technologies", "image_url")

    def to_form(self, entity):
        form = super().to_form(entity)
        form["technologies"] = ", ".join(entity.get("technologies") or [])
        return form

    def to_document(self, form):
        project = Project(
            title=form["title"].strip(),
            description=form["description"].strip(),
            technologies=split_csv(form.get("technologies")),
            image_url=form.get("image_url", ""),
            live_url=form.get("live_url", ""),
            github_url=form.get("github_url", ""),
        )
        return project.model_dump()


class SkillManager(EntityCrudManager):
    collection = SKILLS
    entity_name = "Skill"
    plural = "skills"
    form_model = SkillForm
    required_fields = ("name", "category", "level")

    def to_document(self, form):
        skill = Skill(
            name=form["name"].strip(),
            category=form["category"].strip(),
            level=clamp_level(form.get("level")),
        )
        return skill.model_dump()

    @property
    def categories(self) -> List[str]:
        seen = []
        for skill in self.items:
            if skill.get("category") not in seen:
                seen.append(skill.get("category"))
        return seen


class MessageManager(CollectionManager):
    """Inbox: newest first, read flag and delete only."""

    collection = MESSAGES
    entity_name = "Message"
    plural = "messages"
    order_by = ("created_at", "desc")

    async def mark_as_read(self, message_id: str) -> bool:
        try:
            await self.store.update(self.collection, message_id, {"read": True})
        except WriteFailure as e:
            logger.exception("Error marking message %s as read", message_id)
            self.fail(e, "Failed to update message")
            return False
        self.notify("success", "Message marked as read")
        await self.load()
        return True

    @property
    def unread_count(self) -> int:
        return sum(1 for m in self.items if not m.get("read"))


class SettingsManager(PageState):
    """Editor for the single settings document.

    Embedded lists (social links, education, certifications) are edited by the
    entry's own id, never by position, so an edit cannot land on the wrong
    entry if the list order changed in between.
    """

    collection = SETTINGS
    doc_id = SETTINGS_ID

    required_fields = ("full_name", "title", "bio", "email", "site_title", "site_description")
    required_entry_fields = {
        "social_links": ("platform", "url"),
        "education": ("degree", "institution", "year"),
        "certifications": ("name", "issuer", "date"),
    }
    entry_models = {
        "social_links": SocialLink,
        "education": Education,
        "certifications": Certification,
    }

    def __init__(self, store: DocumentStore):
        super().__init__(store)
        self.settings = Settings()

    async def load(self) -> bool:
        self.pending = True
        try:
            doc = await self.store.get(self.collection, self.doc_id)
            if doc is None:
                defaults = Settings()
                await self.store.set_with_merge(self.collection, self.doc_id, defaults.model_dump())
                logger.info("Created initial %s/%s document", self.collection, self.doc_id)
                doc = defaults.model_dump()
            self.settings = Settings(**drop_none(doc))
            return True
        except (FetchFailure, WriteFailure) as e:
            logger.exception("Error fetching settings")
            self.fail(e, "Failed to fetch settings")
            return False
        except ValidationError:
            # The next submit overwrites the bad document
            logger.exception("Stored settings %s/%s are malformed", self.collection, self.doc_id)
            self.settings = Settings()
            self.notify("error", "Stored settings were invalid, showing defaults")
            return True
        finally:
            self.pending = False

    def update_fields(self, **fields):
        self.settings = self.settings.model_copy(update=fields)

    def set_keywords(self, text: str):
        self.settings.keywords = split_csv(text)

    # Embedded list editing

    def _entries(self, list_name: str) -> list:
        return getattr(self.settings, list_name)

    def _new_id(self, list_name: str) -> str:
        # Millisecond timestamp; bumped until unique within this list.
        taken = {e.id for e in self._entries(list_name)}
        value = int(time.time() * 1000)
        while str(value) in taken:
            value += 1
        return str(value)

    def _index_of(self, list_name: str, entry_id: str) -> int:
        for i, entry in enumerate(self._entries(list_name)):
            if entry.id == entry_id:
                return i
        raise KeyError(entry_id)

    def add_entry(self, list_name: str, **fields) -> str:
        entry_id = self._new_id(list_name)
        model = self.entry_models[list_name]
        self._entries(list_name).append(model(**{**fields, "id": entry_id}))
        return entry_id

    def update_entry(self, list_name: str, entry_id: str, **fields):
        entries = self._entries(list_name)
        i = self._index_of(list_name, entry_id)
        fields.pop("id", None)
        entries[i] = entries[i].model_copy(update=fields)

    def remove_entry(self, list_name: str, entry_id: str):
        entries = self._entries(list_name)
        del entries[self._index_of(list_name, entry_id)]

    def add_social_link(self, **fields) -> str:
        return self.add_entry("social_links", **fields)

    def update_social_link(self, entry_id: str, **fields):
        self.update_entry("social_links", entry_id, **fields)

    def remove_social_link(self, entry_id: str):
        self.remove_entry("social_links", entry_id)

    def add_education(self, **fields) -> str:
        return self.add_entry("education", **fields)

    def update_education(self, entry_id: str, **fields):
        self.update_entry("education", entry_id, **fields)

    def remove_education(self, entry_id: str):
        self.remove_entry("education", entry_id)

    def add_certification(self, **fields) -> str:
        return self.add_entry("certifications", **fields)

    def update_certification(self, entry_id: str, **fields):
        self.update_entry("certifications", entry_id, **fields)

    def remove_certification(self, entry_id: str):
        self.remove_entry("certifications", entry_id)

    def replace(self, settings: Settings):
        """Take a full edited settings object; entries without an id get one."""
        self.settings = settings
        for list_name in self.entry_models:
            for entry in self._entries(list_name):
                if not entry.id:
                    entry.id = self._new_id(list_name)

    def validate(self):
        values = self.settings.model_dump()
        missing = missing_fields(values, self.required_fields)
        for list_name, required in self.required_entry_fields.items():
            for entry in values[list_name]:
                missing.extend(f"{list_name}[{entry['id']}].{f}" for f in missing_fields(entry, required))
        if missing:
            raise ValidationFailure("Please fill in: " + ", ".join(missing), missing)

    async def submit(self) -> bool:
        try:
            self.validate()
        except ValidationFailure as e:
            self.fail(e, str(e))
            return False

        self.pending = True
        try:
            await self.store.set_with_merge(self.collection, self.doc_id, self.settings.model_dump())
        except WriteFailure as e:
            logger.exception("Error saving settings")
            self.fail(e, "Failed to save settings")
            return False
        finally:
            self.pending = False

        self.notify("success", "Settings updated successfully")
        await self.load()
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "settings": self.settings.model_dump(),
            "pending": self.pending,
            "notifications": [n._asdict() for n in self.notifications],
        }


class Dashboard(PageState):
    """Counts shown on the admin landing page."""

    def __init__(self, store: DocumentStore):
        super().__init__(store)
        self.metrics = {
            "total_projects": 0,
            "total_skills": 0,
            "total_messages": 0,
            "unread_messages": 0,
        }

    async def load(self) -> bool:
        self.pending = True
        try:
            projects, skills, messages, unread = await asyncio.gather(
                self.store.count(PROJECTS),
                self.store.count(SKILLS),
                self.store.count(MESSAGES),
                self.store.count(MESSAGES, {"read": False}),
            )
        except FetchFailure as e:
            logger.exception("Error fetching metrics")
            self.fail(e, "Failed to fetch dashboard metrics")
            return False
        finally:
            self.pending = False
        self.metrics = {
            "total_projects": projects,
            "total_skills": skills,
            "total_messages": messages,
            "unread_messages": unread,
        }
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "metrics": self.metrics,
            "pending": self.pending,
            "notifications": [n._asdict() for n in self.notifications],
        }
