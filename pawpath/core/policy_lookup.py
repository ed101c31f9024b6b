"""
Destination pet-policy lookup, normalized into checklist steps and preparation notes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from pawpath.core.schemas import GeneralPreparationItem, PolicyRequirementStep

logger = logging.getLogger(__name__)


class PolicyStore(Protocol):
    def get_pet_policy(self, country_name: str) -> dict | None: ...


@dataclass
class PolicyLookupResult:
    policy_requirements: list[PolicyRequirementStep] = field(default_factory=list)
    general_preparation: list[GeneralPreparationItem] = field(default_factory=list)
    destination_slug: str | None = None


def _title_key(key: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in key.replace("_", " ").split(" "))


def parse_entry_requirements(raw: Any) -> list[PolicyRequirementStep] | None:
    """
    Keep well-formed {step, label, text} entries, ordered by step.

    Returns None when ``raw`` is not a list at all.
    """
    if not isinstance(raw, list):
        return None
    steps = [
        PolicyRequirementStep(step=item["step"], label=item["label"], text=item["text"])
        for item in raw
        if isinstance(item, dict)
        and isinstance(item.get("step"), int)
        and not isinstance(item.get("step"), bool)
        and isinstance(item.get("label"), str)
        and isinstance(item.get("text"), str)
    ]
    return sorted(steps, key=lambda s: s.step)


def build_policy_result(policy: dict | None, destination_country: str) -> PolicyLookupResult:
    result = PolicyLookupResult()
    prep = result.general_preparation

    if not policy:
        prep.append(
            GeneralPreparationItem(
                requirement="Check Requirements",
                details=f"Please check the latest pet entry requirements for {destination_country}.",
            )
        )
        return result

    result.destination_slug = policy.get("slug")

    entry_requirements = policy.get("entry_requirements")
    steps = parse_entry_requirements(entry_requirements)
    if steps is not None:
        result.policy_requirements = steps
    elif entry_requirements:
        prep.append(
            GeneralPreparationItem(
                requirement="Entry Requirements Note",
                details="Could not parse specific entry requirement steps. Please refer to official sources.",
            )
        )

    if policy.get("quarantine_info"):
        prep.append(GeneralPreparationItem(requirement="Quarantine Info", details=policy["quarantine_info"]))

    for key, value in (policy.get("additional_info") or {}).items():
        prep.append(GeneralPreparationItem(requirement=_title_key(key), details=str(value)))

    if policy.get("external_link"):
        prep.append(
            GeneralPreparationItem(
                requirement="More Information",
                details=f"Official Resource: {policy['external_link']}",
            )
        )
    for key, value in (policy.get("external_links") or {}).items():
        prep.append(GeneralPreparationItem(requirement=f"Additional Resource ({key})", details=str(value)))

    return result


async def lookup_policy(store: PolicyStore | None, destination_country: str) -> PolicyLookupResult:
    """
    Fetch and normalize the pet policy for a destination country.

    Store failures degrade to the generic "check requirements" note.
    """
    policy = None
    if store is None:
        logger.warning("[PolicyLookup] No policy store configured")
    else:
        try:
            policy = await asyncio.to_thread(store.get_pet_policy, destination_country)
        except Exception as e:
            logger.warning("[PolicyLookup] Lookup failed for %s: %s", destination_country, e)

    if policy:
        logger.info("[PolicyLookup] Found pet policy for %s", destination_country)
    else:
        logger.info("[PolicyLookup] No pet policy found for %s", destination_country)
    return build_policy_result(policy, destination_country)
