from unittest import IsolatedAsyncioTestCase, TestCase

from errors import ValidationFailure
from public import (
    display_name,
    featured_projects,
    render_about,
    render_home,
    render_site_header,
    skill_categories,
    submit_contact,
    top_skills,
)
from schemas import ContactForm
from tests.helpers import FlakyStore


def skill(name, level, category="Languages"):
    return {"id": name, "name": name, "category": category, "level": level}


class DerivedViewTests(TestCase):
    def test_featured_projects_are_first_three_in_store_order(self):
        for n in range(0, 6):
            projects = [{"id": str(i)} for i in range(n)]
            self.assertEqual(featured_projects(projects), projects[:3])

    def test_top_skills_sorted_stable_and_truncated(self):
        skills = [
            skill("a", 5), skill("b", 9), skill("c", 5), skill("d", 9),
            skill("e", 1), skill("f", 7), skill("g", 5), skill("h", 3),
        ]
        self.assertEqual([s["name"] for s in top_skills(skills)], ["b", "d", "f", "a", "c", "g"])

    def test_top_skills_with_few_skills(self):
        self.assertEqual(top_skills([]), [])
        self.assertEqual([s["name"] for s in top_skills([skill("a", 2), skill("b", 4)])], ["b", "a"])

    def test_top_skills_tolerates_non_numeric_levels(self):
        skills = [skill("a", 9), skill("b", "8"), skill("c", None), skill("d", "high"), skill("e", 8.5)]
        self.assertEqual([s["name"] for s in top_skills(skills)], ["a", "e", "b", "c", "d"])

    def test_categories_in_first_seen_order(self):
        skills = [skill("Go", 9, "Languages"), skill("Docker", 7, "Tools"), skill("Rust", 8, "Languages")]
        self.assertEqual(skill_categories(skills), ["Languages", "Tools"])

    def test_display_name_fallback(self):
        self.assertEqual(display_name(None, "Developer"), "Developer")
        self.assertEqual(display_name({"full_name": ""}, "Developer"), "Developer")
        self.assertEqual(display_name({"full_name": "Ada"}, "Developer"), "Ada")


class RenderTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = FlakyStore()
        await self.store.set_with_merge("settings", "general", {"full_name": "Ada", "title": "Engineer"})
        for i in range(4):
            await self.store.create("projects", {"title": f"p{i}"})
        for name, level in (("Go", 9), ("Rust", 8), ("SQL", 9)):
            await self.store.create("skills", {"name": name, "category": "Languages", "level": level})

    async def test_home(self):
        page = await render_home(self.store)
        self.assertEqual(page["display_name"], "Ada")
        self.assertEqual([p["title"] for p in page["featured_projects"]], ["p0", "p1", "p2"])
        self.assertEqual([s["name"] for s in page["top_skills"]], ["Go", "SQL", "Rust"])

    async def test_home_with_text_level_in_store(self):
        await self.store.create("skills", {"name": "Bash", "category": "Tools", "level": "10"})
        await self.store.create("skills", {"name": "Perl", "category": "Tools"})
        page = await render_home(self.store)
        self.assertEqual([s["name"] for s in page["top_skills"]], ["Bash", "Go", "SQL", "Rust", "Perl"])

    async def test_failed_settings_fall_back_without_blocking_others(self):
        self.store.broken_reads.add("settings")
        page = await render_home(self.store)
        self.assertEqual(page["display_name"], "Developer")
        self.assertEqual(len(page["featured_projects"]), 3)
        self.assertEqual(len(page["top_skills"]), 3)

    async def test_failed_collection_renders_empty_section(self):
        self.store.broken_reads.add("projects")
        page = await render_home(self.store)
        self.assertEqual(page["featured_projects"], [])
        self.assertEqual(page["display_name"], "Ada")

    async def test_about_groups_skills(self):
        await self.store.create("skills", {"name": "Docker", "category": "Tools", "level": 6})
        page = await render_about(self.store)
        self.assertEqual([g["category"] for g in page["skill_groups"]], ["Languages", "Tools"])
        self.assertEqual([s["name"] for s in page["skill_groups"][0]["skills"]], ["Go", "Rust", "SQL"])
        self.assertEqual(page["sections"], [])

    async def test_header_fallback(self):
        self.assertEqual(await render_site_header(self.store), {"display_name": "Ada"})
        self.store.broken_reads.add("settings")
        self.assertEqual(await render_site_header(self.store), {"display_name": "Portfolio"})


class ContactTests(IsolatedAsyncioTestCase):
    async def test_empty_message_is_rejected_before_writing(self):
        store = FlakyStore()
        form = ContactForm(name="Ann", email="ann@example.com", subject="Hi", message="   ")

        with self.assertRaises(ValidationFailure) as ctx:
            await submit_contact(store, form)

        self.assertEqual(ctx.exception.fields, ["message"])
        self.assertEqual(store.writes, 0)

    async def test_message_is_stored_unread_with_timestamp(self):
        store = FlakyStore()
        form = ContactForm(name="Ann", email="ann@example.com", subject="Hi", message="Hello")

        message_id = await submit_contact(store, form)

        stored = await store.get("messages", message_id)
        self.assertFalse(stored["read"])
        self.assertEqual(stored["message"], "Hello")
        self.assertTrue(stored["created_at"].endswith("Z"))
