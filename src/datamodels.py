"""Data models for the menu scanning assistant."""

from enum import StrEnum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model persisted and exchanged with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DietaryLabel(StrEnum):
    """Dietary-compliance labels a dish can satisfy."""

    VEGETARIAN = "Vegetarian"
    VEGAN = "Vegan"
    GLUTEN_FREE = "Gluten-Free"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().lower().replace(" ", "-")
            for member in cls:
                if member.value.lower() == key:
                    return member
        return None


ALLERGEN_SYNONYMS = {
    "nut": "nuts",
    "peanut": "nuts",
    "peanuts": "nuts",
    "tree nuts": "nuts",
    "tree nut": "nuts",
    "milk": "dairy",
    "lactose": "dairy",
    "wheat": "gluten",
    "egg": "eggs",
    "soya": "soy",
    "crustaceans": "shellfish",
    "sulfites": "sulphites",
}


class Allergen(StrEnum):
    """Allergen labels a dish can contain."""

    NUTS = "nuts"
    DAIRY = "dairy"
    GLUTEN = "gluten"
    EGGS = "eggs"
    SOY = "soy"
    FISH = "fish"
    SHELLFISH = "shellfish"
    SESAME = "sesame"
    CELERY = "celery"
    MUSTARD = "mustard"
    LUPIN = "lupin"
    MOLLUSCS = "molluscs"
    SULPHITES = "sulphites"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            key = ALLERGEN_SYNONYMS.get(key, key)
            for member in cls:
                if member.value == key:
                    return member
        return None


class MenuItem(CamelModel):
    """A single dish returned by menu analysis.

    Two items are the same dish iff their ``original`` fields are equal.
    """

    original: str
    translated: str
    description: str = ""
    ingredients: list[str] = Field(default_factory=list)
    dietary: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    spice_level: str = ""
    category: str = ""
    price: str = ""

    @field_validator("ingredients", "dietary", "allergens", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class DietaryProfile(CamelModel):
    """User's dietary restrictions and allergies."""

    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    has_nut_allergy: bool = False
    has_dairy_allergy: bool = False


class CompatibilityVerdict(CamelModel):
    """Safety verdict of one dish against one dietary profile."""

    model_config = ConfigDict(frozen=True)

    is_safe: bool
    violations: list[str] = Field(default_factory=list)

    @property
    def headline(self) -> str | None:
        """The warning shown on the dish card, if any."""
        return self.violations[0] if self.violations else None


class PendingScan(CamelModel):
    """An image captured while offline, awaiting analysis."""

    id: str
    image_data: str
    timestamp: int


class CachedTranslation(CamelModel):
    """A recently completed translation kept for offline viewing."""

    id: str
    original_text: str
    translated_text: str
    menu_items: list[MenuItem]
    image_data: str
    timestamp: int


class User(BaseModel):
    """A signed-in Google account."""

    id: str
    email: str | None = None
    name: str = ""
    picture: str | None = None


class HistoryRecord(BaseModel):
    """A row of the scan history table."""

    id: int
    user_id: str
    original_text: str
    translated_text: str | None = None
    image_data: str | None = None
    created_at: str


class AnalyzerMenuItem(BaseModel):
    """Represents a dish in the OpenAI API response."""

    original: str
    translated: str
    description: str
    ingredients: list[str]
    dietary: list[str]
    spice_level: str
    category: str
    price: str
    allergens: list[str]


class AnalyzerResponse(BaseModel):
    """Represents the complete OpenAI API response."""

    items: list[AnalyzerMenuItem]
