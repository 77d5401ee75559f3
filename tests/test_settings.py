from unittest import IsolatedAsyncioTestCase

from errors import ValidationFailure
from managers import SettingsManager
from schemas import Education, Settings
from tests.helpers import FlakyStore

REQUIRED = {
    "full_name": "Ada Lovelace",
    "title": "Engineer",
    "bio": "Builds things",
    "email": "ada@example.com",
    "site_title": "Ada",
    "site_description": "Portfolio of Ada",
}


class SettingsBootstrapTests(IsolatedAsyncioTestCase):
    async def test_first_load_creates_defaults_once(self):
        store = FlakyStore()

        first = SettingsManager(store)
        self.assertTrue(await first.load())
        self.assertEqual(first.settings, Settings())

        stored = await store.get("settings", "general")
        self.assertEqual({k: v for k, v in stored.items() if k != "id"}, Settings().model_dump())

        second = SettingsManager(store)
        self.assertTrue(await second.load())
        self.assertEqual(second.settings, first.settings)
        self.assertEqual(await store.count("settings"), 1)
        self.assertEqual(store.writes, 1)

    async def test_load_failure_is_reported(self):
        manager = SettingsManager(FlakyStore(broken_reads=["settings"]))
        self.assertFalse(await manager.load())
        self.assertEqual(manager.notifications[-1].text, "Failed to fetch settings")

    async def test_null_fields_load_as_defaults(self):
        store = FlakyStore()
        await store.set_with_merge("settings", "general", {
            "full_name": "Ada",
            "location": None,
            "profile_image": None,
            "education": [None, {"degree": "BSc", "institution": "UCL", "year": None}],
        })

        manager = SettingsManager(store)
        self.assertTrue(await manager.load())

        self.assertEqual(manager.settings.full_name, "Ada")
        self.assertEqual(manager.settings.location, "")
        self.assertEqual(manager.settings.profile_image, "")
        self.assertEqual(len(manager.settings.education), 1)
        self.assertEqual(manager.settings.education[0].year, "")
        self.assertEqual(manager.notifications, [])

    async def test_malformed_settings_fall_back_to_defaults(self):
        store = FlakyStore()
        await store.set_with_merge("settings", "general", {"full_name": "Ada", "social_links": "twitter"})

        manager = SettingsManager(store)
        self.assertTrue(await manager.load())

        self.assertEqual(manager.settings, Settings())
        self.assertIsNone(manager.error)
        self.assertEqual(manager.notifications[-1].level, "error")


class SettingsEditingTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = FlakyStore()
        self.manager = SettingsManager(self.store)
        await self.manager.load()
        self.manager.update_fields(**REQUIRED)

    async def test_submit_round_trip(self):
        self.manager.set_keywords("python, fastapi, ,mongodb")
        link_id = self.manager.add_social_link(platform="GitHub", url="https://github.com/ada")

        self.assertTrue(await self.manager.submit())

        fresh = SettingsManager(self.store)
        await fresh.load()
        self.assertEqual(fresh.settings.full_name, "Ada Lovelace")
        self.assertEqual(fresh.settings.keywords, ["python", "fastapi", "mongodb"])
        self.assertEqual(fresh.settings.social_links[0].id, link_id)
        self.assertEqual(fresh.settings.social_links[0].url, "https://github.com/ada")

    async def test_entries_are_edited_by_id(self):
        first = self.manager.add_education(degree="BSc", institution="Uni A", year="2010")
        second = self.manager.add_education(degree="MSc", institution="Uni B", year="2012")
        self.assertNotEqual(first, second)

        # Reordering does not redirect an edit to the wrong entry
        self.manager.settings.education.reverse()
        self.manager.update_education(first, description="Mathematics")

        by_id = {e.id: e for e in self.manager.settings.education}
        self.assertEqual(by_id[first].description, "Mathematics")
        self.assertEqual(by_id[second].description, "")

        self.manager.remove_education(second)
        self.assertEqual([e.id for e in self.manager.settings.education], [first])

    async def test_unknown_entry_id(self):
        with self.assertRaises(KeyError):
            self.manager.update_certification("missing", name="AWS")

    async def test_certification_lifecycle(self):
        cert_id = self.manager.add_certification(name="CKA", issuer="CNCF", date="2023")
        self.manager.update_certification(cert_id, url="https://cncf.io/cert")
        self.assertTrue(await self.manager.submit())

        certs = self.manager.settings.certifications
        self.assertEqual(len(certs), 1)
        self.assertEqual(certs[0].url, "https://cncf.io/cert")

        self.manager.remove_certification(cert_id)
        self.assertTrue(await self.manager.submit())
        self.assertEqual(self.manager.settings.certifications, [])

    async def test_missing_fields_block_the_save(self):
        self.manager.update_fields(bio="")
        edu_id = self.manager.add_education(degree="BSc")

        self.assertFalse(await self.manager.submit())

        self.assertIsInstance(self.manager.error, ValidationFailure)
        self.assertIn("bio", self.manager.error.fields)
        self.assertIn(f"education[{edu_id}].institution", self.manager.error.fields)
        # only the bootstrap write happened
        self.assertEqual(self.store.writes, 1)
        self.assertEqual(self.manager.settings.education[0].degree, "BSc")

    async def test_write_failure_keeps_edits(self):
        self.store.broken_writes.add("settings")
        self.assertFalse(await self.manager.submit())
        self.assertEqual(self.manager.settings.full_name, "Ada Lovelace")
        self.assertEqual(self.manager.notifications[-1].text, "Failed to save settings")

    async def test_replace_assigns_missing_entry_ids(self):
        edited = Settings(**REQUIRED, education=[Education(degree="BSc", institution="Uni", year="2010")])
        self.manager.replace(edited)

        entry_id = self.manager.settings.education[0].id
        self.assertTrue(entry_id)
        self.assertTrue(await self.manager.submit())
        self.assertEqual(self.manager.settings.education[0].id, entry_id)
