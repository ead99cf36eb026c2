import unittest
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from tests.factories import CAPSTONE_REPO, PROJECT_REPO, START, batch_payload, make_batch, make_course
from traintrack.model.curriculum import Assignment, AssignmentKey, AssignmentOptionality, Course, Sprint
from traintrack.model.roster import Batch, Region, normalize_login


class CurriculumTests(unittest.TestCase):
    def test_sprints_numbered_by_position_and_repository_inherited(self) -> None:
        course = make_course()
        module = course.module("Capstone")
        self.assertEqual([sprint.number for sprint in module.sprints], [1, 2])
        self.assertEqual(module.sprints[0].assignments[0].repository, CAPSTONE_REPO)
        self.assertEqual(module.sprints[1].assignments[0].repository, PROJECT_REPO)

    def test_entries_follow_curriculum_order(self) -> None:
        course = make_course()
        self.assertEqual(
            course.slot_keys(),
            [AssignmentKey("Capstone", 1, 0), AssignmentKey("Capstone", 2, 0)],
        )
        self.assertEqual(course.assignment_count(), 2)
        self.assertEqual(course.repositories(), {CAPSTONE_REPO, PROJECT_REPO})

    def test_module_repository_defaults_to_name(self) -> None:
        course = Course.model_validate(
            {"name": "c", "modules": [{"name": "js1", "sprints": [{"assignments": [{"title": "Exercises"}]}]}]}
        )
        self.assertEqual(course.modules[0].repository, "js1")
        self.assertEqual(course.modules[0].sprints[0].assignments[0].repository, "js1")

    def test_invalid_title_pattern_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            Assignment(title="Broken", repository="org/repo", title_pattern="(unclosed")

    def test_pattern_matches_title_or_branch(self) -> None:
        assignment = Assignment(title="Quote", repository="org/repo", title_pattern=r"quote[- ]?generator")
        self.assertTrue(assignment.pattern_matches("My QUOTE GENERATOR"))
        self.assertTrue(assignment.pattern_matches("unrelated", "feature/quote-generator"))
        self.assertFalse(assignment.pattern_matches("unrelated", None))
        self.assertFalse(Assignment(title="x", repository="r").pattern_matches("x"))

    def test_due_at_prefers_assignment_offset_then_region_date(self) -> None:
        sprint = Sprint(number=1, offset_days=7, dates={"London": date(2026, 1, 10)})
        plain = Assignment(title="a", repository="r")
        own_offset = Assignment(title="b", repository="r", offset_days=3)
        london = ZoneInfo("Europe/London")

        self.assertEqual(
            sprint.due_at(plain, start_date=START, region="London", tz=london),
            datetime(2026, 1, 10, tzinfo=timezone.utc),
        )
        self.assertEqual(
            sprint.due_at(plain, start_date=START, region="Cape Town", tz=ZoneInfo("Africa/Johannesburg")),
            datetime(2026, 1, 12, tzinfo=timezone.utc),
        )
        self.assertEqual(
            sprint.due_at(own_offset, start_date=START, region="London", tz=london),
            datetime(2026, 1, 8, tzinfo=timezone.utc),
        )

    def test_region_date_is_local_midnight(self) -> None:
        sprint = Sprint(number=1, dates={"Cape Town": date(2026, 1, 10)})
        due = sprint.due_at(
            Assignment(title="a", repository="r"),
            start_date=START,
            region="Cape Town",
            tz=ZoneInfo("Africa/Johannesburg"),
        )
        self.assertEqual(due, datetime(2026, 1, 9, 22, 0, tzinfo=timezone.utc))

    def test_stretch_flag(self) -> None:
        self.assertTrue(Assignment(title="a", repository="r", optionality="stretch").is_stretch)
        self.assertIs(Assignment(title="a", repository="r").optionality, AssignmentOptionality.MANDATORY)


class RosterTests(unittest.TestCase):
    def test_logins_are_case_insensitive(self) -> None:
        batch = make_batch(["Alice"])
        self.assertEqual(normalize_login("  ALICE "), "alice")
        self.assertIsNotNone(batch.trainee("alice"))
        self.assertEqual(batch.trainee("ALICE").github_login, "Alice")
        self.assertIsNone(batch.trainee("mallory"))

    def test_class_weekdays_expand_to_scheduled_days(self) -> None:
        batch = make_batch(holidays=[date(2026, 1, 17)])
        self.assertEqual(batch.scheduled_days[:3], (date(2026, 1, 10), date(2026, 1, 24), date(2026, 1, 31)))
        self.assertTrue(all(day.isoweekday() == 6 for day in batch.scheduled_days))

    def test_explicit_scheduled_days_are_sorted_and_deduplicated(self) -> None:
        payload = batch_payload()
        payload.pop("class_weekdays")
        payload["scheduled_days"] = [date(2026, 1, 12), date(2026, 1, 6), date(2026, 1, 12)]
        batch = Batch.model_validate(payload)
        self.assertEqual(batch.scheduled_days, (date(2026, 1, 6), date(2026, 1, 12)))

    def test_regions_accept_names_or_timezones(self) -> None:
        batch = make_batch(regions=["London", "Glasgow"])
        self.assertEqual(batch.regions["Glasgow"].timezone, "Europe/London")
        batch = make_batch(regions={"London": "Europe/London", "Cape Town": {"timezone": "Africa/Johannesburg"}})
        self.assertEqual(batch.regions["Cape Town"].tz, ZoneInfo("Africa/Johannesburg"))

    def test_unknown_timezone_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            Region(timezone="Mars/Olympus_Mons")

    def test_all_regions_most_populous_first(self) -> None:
        payload = batch_payload(regions={"London": "Europe/London", "Cape Town": "Africa/Johannesburg"})
        payload["trainees"] = [
            {"github_login": "a", "region": "London"},
            {"github_login": "b", "region": "Cape Town"},
            {"github_login": "c", "region": "Cape Town"},
        ]
        self.assertEqual(Batch.model_validate(payload).all_regions(), ["Cape Town", "London"])

    def test_models_are_frozen(self) -> None:
        batch = make_batch()
        with self.assertRaises(ValidationError):
            batch.name = "changed"


if __name__ == "__main__":
    unittest.main()
