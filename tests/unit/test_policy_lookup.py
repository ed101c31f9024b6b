import pytest

from pawpath.core.policy_lookup import build_policy_result, lookup_policy, parse_entry_requirements


class BrokenStore:
    def get_pet_policy(self, country_name):
        raise ConnectionError("store offline")


@pytest.mark.asyncio
async def test_lookup_orders_steps_and_builds_preparation(fake_repo):
    result = await lookup_policy(fake_repo, "portugal")

    assert [s.label for s in result.policy_requirements] == ["Microchip", "Rabies Vaccine"]
    assert result.destination_slug == "portugal"
    prep = {p.requirement: p.details for p in result.general_preparation}
    assert prep["Quarantine Info"] == "No quarantine for compliant pets."
    assert prep["Pet Passport"] == "EU pet passport accepted."
    assert prep["More Information"] == "Official Resource: https://example.org/portugal-pets"


@pytest.mark.asyncio
async def test_missing_policy_yields_check_requirements(fake_repo):
    result = await lookup_policy(fake_repo, "Atlantis")
    assert result.policy_requirements == []
    assert result.destination_slug is None
    assert result.general_preparation[0].requirement == "Check Requirements"
    assert "Atlantis" in result.general_preparation[0].details


@pytest.mark.asyncio
async def test_store_failure_degrades_to_default():
    result = await lookup_policy(BrokenStore(), "Portugal")
    assert result.general_preparation[0].requirement == "Check Requirements"

    result = await lookup_policy(None, "Portugal")
    assert result.general_preparation[0].requirement == "Check Requirements"


def test_unparseable_entry_requirements_add_note():
    result = build_policy_result({"slug": "x", "entry_requirements": "see website"}, "X")
    assert result.policy_requirements == []
    assert result.general_preparation[0].requirement == "Entry Requirements Note"


def test_parse_entry_requirements_skips_malformed_items():
    steps = parse_entry_requirements(
        [{"step": 3, "label": "C", "text": "c"}, {"step": "1", "label": "A"}, "junk", {"step": 1, "label": "B", "text": "b"}]
    )
    assert [s.step for s in steps] == [1, 3]
    assert parse_entry_requirements({"step": 1}) is None


def test_external_links_become_additional_resources():
    result = build_policy_result({"external_links": {"embassy": "https://embassy.example"}}, "X")
    assert result.general_preparation[-1].requirement == "Additional Resource (embassy)"
