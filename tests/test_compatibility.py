"""Tests for the dietary compatibility evaluator."""

import itertools

import pytest

from src.compatibility import evaluate_compatibility
from src.datamodels import DietaryProfile
from src.datamodels import MenuItem

ALL_VIOLATIONS = ["Not Vegetarian", "Not Vegan", "Contains Gluten", "Contains Nuts", "Contains Dairy"]
PROFILE_FLAGS = ["is_vegetarian", "is_vegan", "is_gluten_free", "has_nut_allergy", "has_dairy_allergy"]


def make_item(dietary: list[str] | None = None, allergens: list[str] | None = None) -> MenuItem:
    return MenuItem(original="Plat", translated="Dish", dietary=dietary, allergens=allergens)


def test_vegan_profile_rejects_vegetarian_only_dish():
    """Test a vegetarian dish is not vegan."""
    verdict = evaluate_compatibility(make_item(dietary=["Vegetarian"]), DietaryProfile(is_vegan=True))

    assert verdict.is_safe is False
    assert verdict.violations == ["Not Vegan"]


def test_allergies_reported_in_fixed_order():
    """Test nuts is reported before dairy."""
    profile = DietaryProfile(has_nut_allergy=True, has_dairy_allergy=True)

    verdict = evaluate_compatibility(make_item(allergens=["dairy", "nuts"]), profile)

    assert verdict.violations == ["Contains Nuts", "Contains Dairy"]
    assert verdict.headline == "Contains Nuts"


@pytest.mark.parametrize(
    "item",
    [
        make_item(),
        make_item(dietary=["Vegan"], allergens=["nuts", "dairy"]),
        make_item(allergens=["nuts", "dairy", "gluten"]),
    ],
)
def test_empty_profile_is_always_safe(item):
    """Test no restrictions means no violations, whatever the dish."""
    verdict = evaluate_compatibility(item, DietaryProfile())

    assert verdict.is_safe is True
    assert verdict.violations == []
    assert verdict.headline is None


def test_vegan_dish_satisfies_vegetarian():
    verdict = evaluate_compatibility(make_item(dietary=["Vegan"]), DietaryProfile(is_vegetarian=True))

    assert verdict.is_safe is True


def test_every_violation_collected():
    """Test checks do not short-circuit."""
    profile = DietaryProfile(**{flag: True for flag in PROFILE_FLAGS})

    verdict = evaluate_compatibility(make_item(allergens=["nuts", "dairy"]), profile)

    assert verdict.violations == ALL_VIOLATIONS


def test_missing_labels_fail_safe():
    """Test absent dietary data counts as not compliant."""
    profile = DietaryProfile(is_vegetarian=True, is_gluten_free=True)

    verdict = evaluate_compatibility(make_item(dietary=None, allergens=None), profile)

    assert verdict.violations == ["Not Vegetarian", "Contains Gluten"]


@pytest.mark.parametrize(
    "dietary,allergens,profile",
    [
        (["vegan"], [], DietaryProfile(is_vegan=True)),
        (["gluten-free"], [], DietaryProfile(is_gluten_free=True)),
    ],
)
def test_labels_match_exactly(dietary, allergens, profile):
    """Test label matching is case-sensitive."""
    verdict = evaluate_compatibility(make_item(dietary=dietary, allergens=allergens), profile)

    assert verdict.is_safe is False


def test_allergen_case_mismatch_is_not_detected():
    """Test "Nuts" does not match the "nuts" allergen label."""
    verdict = evaluate_compatibility(make_item(allergens=["Nuts"]), DietaryProfile(has_nut_allergy=True))

    assert verdict.is_safe is True


@pytest.mark.parametrize("flags", list(itertools.product([False, True], repeat=5)))
def test_verdict_invariants(flags):
    """Test is_safe matches empty violations and order follows the fixed list."""
    profile = DietaryProfile(**dict(zip(PROFILE_FLAGS, flags)))
    item = make_item(dietary=["Vegetarian"], allergens=["nuts"])

    verdict = evaluate_compatibility(item, profile)

    assert verdict.is_safe == (verdict.violations == [])
    assert set(verdict.violations) <= set(ALL_VIOLATIONS)
    assert verdict.violations == sorted(verdict.violations, key=ALL_VIOLATIONS.index)
