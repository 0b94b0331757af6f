"""Dietary compatibility of menu items against a user's profile."""

from src.datamodels import CompatibilityVerdict
from src.datamodels import DietaryProfile
from src.datamodels import MenuItem

NOT_VEGETARIAN = "Not Vegetarian"
NOT_VEGAN = "Not Vegan"
CONTAINS_GLUTEN = "Contains Gluten"
CONTAINS_NUTS = "Contains Nuts"
CONTAINS_DAIRY = "Contains Dairy"


def evaluate_compatibility(item: MenuItem, profile: DietaryProfile) -> CompatibilityVerdict:
    """Check a dish against every restriction in the profile.

    All checks run, in a fixed order, so the first violation is a stable
    headline while the verdict still carries every reason. Labels are matched
    as exact strings: "vegan" does not satisfy a "Vegan" requirement.

    Args:
        item: Dish to evaluate.
        profile: User's dietary restrictions.

    Returns:
        CompatibilityVerdict with is_safe and the ordered violations.
    """
    dietary = item.dietary
    allergens = item.allergens
    violations = []

    if profile.is_vegetarian and "Vegetarian" not in dietary and "Vegan" not in dietary:
        violations.append(NOT_VEGETARIAN)
    if profile.is_vegan and "Vegan" not in dietary:
        violations.append(NOT_VEGAN)
    if profile.is_gluten_free and "Gluten-Free" not in dietary:
        violations.append(CONTAINS_GLUTEN)
    if profile.has_nut_allergy and "nuts" in allergens:
        violations.append(CONTAINS_NUTS)
    if profile.has_dairy_allergy and "dairy" in allergens:
        violations.append(CONTAINS_DAIRY)

    return CompatibilityVerdict(is_safe=not violations, violations=violations)
