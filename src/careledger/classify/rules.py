"""Ordered keyword rules mapping merchant text onto deductible expense categories.

Rules are evaluated top to bottom and the first rule with a matching keyword
wins, so the table runs from the most specific medical categories down to the
broad ones, followed by the transportation rules. Keyword groups follow IRS
Publication 502 groupings.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import NamedTuple, Optional, Pattern, Tuple

MEDICAL = "medical"
TRANSPORTATION = "transportation"

GROUP_CATEGORIES = {
    MEDICAL: "Medical Care",
    TRANSPORTATION: "Transportation",
}
UNMATCHED_CATEGORY = "Other"


class CategoryRule(NamedTuple):
    category: str
    subcategory: str
    group: str
    keywords: Tuple[str, ...]


def _medical(subcategory: str, *keywords: str) -> CategoryRule:
    return CategoryRule(GROUP_CATEGORIES[MEDICAL], subcategory, MEDICAL, keywords)


def _transport(subcategory: str, *keywords: str) -> CategoryRule:
    return CategoryRule(GROUP_CATEGORIES[TRANSPORTATION], subcategory, TRANSPORTATION, keywords)


RULES: Tuple[CategoryRule, ...] = (
    _medical(
        "Prescriptions",
        "pharmacy",
        "pharmacies",
        "cvs",
        "walgreens",
        "rite aid",
        "drugstore",
        "drug store",
        "duane reade",
        "prescription",
        "rx",
        "insulin",
        "medication",
        "express scripts",
        "caremark",
        "optum rx",
    ),
    _medical(
        "Dental",
        "dental",
        "dentist",
        "dentistry",
        "orthodont",
        "endodont",
        "periodont",
        "oral surgery",
        "dentures",
    ),
    _medical(
        "Vision",
        "optometr",
        "ophthalm",
        "optical",
        "optician",
        "eyeglass",
        "contact lens",
        "lasik",
        "vision",
        "lenscrafters",
        "warby parker",
    ),
    _medical(
        "Therapy",
        "therapy",
        "therapist",
        "physical therapy",
        "occupational therapy",
        "speech therapy",
        "counseling",
        "counselling",
        "psychiatr",
        "psycholog",
        "mental health",
        "chiropract",
    ),
    _medical(
        "Hospital & Emergency",
        "hospital",
        "emergency room",
        "emergency dept",
        "urgent care",
        "medical center",
        "inpatient",
        "surgery center",
    ),
    _medical(
        "Medical Supplies & Equipment",
        "medical supply",
        "medical supplies",
        "medical equipment",
        "wheelchair",
        "crutches",
        "prosthe",
        "hearing aid",
        "oxygen",
        "cpap",
        "glucose",
        "diabetic",
        "blood pressure monitor",
        "incontinence",
        "first aid",
        "bandage",
        "mobility aid",
    ),
    _medical(
        "Home & Nursing Care",
        "home health",
        "home care",
        "homecare",
        "nursing",
        "caregiver",
        "assisted living",
        "adult day",
        "respite care",
        "hospice",
        "memory care",
        "long-term care",
        "long term care",
    ),
    _medical(
        "Insurance Premiums",
        "health insurance",
        "dental insurance",
        "medicare",
        "medicaid",
        "blue cross",
        "blue shield",
        "aetna",
        "cigna",
        "humana",
        "unitedhealthcare",
        "kaiser",
    ),
    _medical(
        "Doctor Visits",
        "doctor",
        "physician",
        "clinic",
        "medical",
        "pediatric",
        "dermatolog",
        "cardiolog",
        "neurolog",
        "radiology",
        "imaging",
        "labcorp",
        "quest diagnostics",
        "primary care",
        "family practice",
        "telehealth",
        "teladoc",
        "copay",
    ),
    _transport("Ambulance", "ambulance", "paramedic", "medevac"),
    _transport("Rideshare & Taxi", "uber", "lyft", "taxi", "cab", "rideshare"),
    _transport(
        "Public Transit",
        "transit",
        "transportation",
        "metro",
        "subway",
        "bus fare",
        "mta",
        "bart",
        "amtrak",
        "paratransit",
    ),
    _transport(
        "Mileage & Parking",
        "parking",
        "parkmobile",
        "spothero",
        "toll",
        "ezpass",
        "e-zpass",
        "mileage",
    ),
    _transport(
        "Medical Lodging",
        "hope lodge",
        "ronald mcdonald house",
        "medical lodging",
        "patient housing",
    ),
)


def _keyword_pattern(keyword: str) -> str:
    parts = [re.escape(part) for part in keyword.split()]
    body = r"\s+".join(parts)
    # Keywords up to five letters (rx, bart, metro) are whole words, plural allowed;
    # longer ones match at word starts.
    suffix = r"s?\b" if len(keyword) <= 5 else ""
    return rf"\b{body}{suffix}"


@lru_cache(maxsize=None)
def compiled_rules() -> Tuple[Tuple[CategoryRule, Tuple[Tuple[str, Pattern[str]], ...]], ...]:
    return tuple(
        (
            rule,
            tuple(
                (keyword, re.compile(_keyword_pattern(keyword), re.IGNORECASE))
                for keyword in rule.keywords
            ),
        )
        for rule in RULES
    )


def match_rule(text: str) -> Optional[Tuple[CategoryRule, str]]:
    """Return the first rule (in table order) with a keyword found in ``text``."""

    if not text:
        return None
    for rule, patterns in compiled_rules():
        for keyword, pattern in patterns:
            if pattern.search(text):
                return rule, keyword
    return None


__all__ = [
    "MEDICAL",
    "TRANSPORTATION",
    "GROUP_CATEGORIES",
    "UNMATCHED_CATEGORY",
    "CategoryRule",
    "RULES",
    "match_rule",
]
