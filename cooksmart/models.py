from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, PositiveInt, field_validator
from pydantic.alias_generators import to_camel


class MealType(Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


# Advisory only, the relay passes any tag through to the prompt.
KNOWN_DIET_CONCERNS = (
    "vegan",
    "vegetarian",
    "pescatarian",
    "glutenFree",
    "dairyFree",
    "lowCarb",
    "keto",
)


class GenerationRequest(BaseModel):
    """Meal preferences for a single generation.

    Field names are camelCase on the wire and in the preference store.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    meal_type: MealType = MealType.dinner
    cuisine: str = ""
    diet_concerns: tuple[str, ...] = ()
    cooking_time: PositiveInt = 30
    servings: PositiveInt = 2
    target_calories: PositiveInt = 600

    @field_validator("diet_concerns", mode="before")
    @classmethod
    def split_diet_concerns(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return tuple(str(v).strip() for v in value if str(v).strip())
        return value

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "GenerationRequest":
        fields = {
            field.alias: params[field.alias]
            for field in cls.model_fields.values()
            if field.alias in params
        }
        return cls.model_validate(fields)

    def to_query_params(self) -> dict[str, str]:
        return {
            "mealType": self.meal_type.value,
            "cuisine": self.cuisine,
            "dietConcerns": ",".join(self.diet_concerns),
            "cookingTime": str(self.cooking_time),
            "servings": str(self.servings),
            "targetCalories": str(self.target_calories),
        }

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ParsedRecipe:
    def __init__(
        self,
        *,
        title: str,
        ingredients: list[str] | tuple[str, ...],
        instructions: list[str] | tuple[str, ...],
    ) -> None:
        self._title = title
        self._ingredients = tuple(ingredients)
        self._instructions = tuple(instructions)

    @property
    def title(self) -> str:
        return self._title

    @property
    def ingredients(self) -> list[str]:
        return list(self._ingredients)

    @property
    def instructions(self) -> list[str]:
        return list(self._instructions)

    @property
    def is_empty(self) -> bool:
        return not (self._ingredients or self._instructions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParsedRecipe):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((self._title, self._ingredients, self._instructions))

    def __repr__(self) -> str:
        return f"<ParsedRecipe(title={self.title!r})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "ingredients": self.ingredients,
            "instructions": self.instructions,
        }


class GeneratedMeal:
    """A parsed recipe with the timing and calories the user asked for.

    ``prep_time`` and ``calories`` come from the request, never from the text.
    """

    def __init__(self, recipe: ParsedRecipe, *, prep_time: int, calories: int) -> None:
        self.recipe = recipe
        self.prep_time = prep_time
        self.calories = calories

    @classmethod
    def from_request(
        cls, recipe: ParsedRecipe, request: GenerationRequest
    ) -> "GeneratedMeal":
        return cls(
            recipe,
            prep_time=request.cooking_time,
            calories=request.target_calories,
        )

    @property
    def title(self) -> str:
        return self.recipe.title

    @property
    def ingredients(self) -> list[str]:
        return self.recipe.ingredients

    @property
    def instructions(self) -> list[str]:
        return self.recipe.instructions

    def __repr__(self) -> str:
        return f"<GeneratedMeal(title={self.title!r}, calories={self.calories})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.recipe.to_dict(),
            "prepTime": self.prep_time,
            "calories": self.calories,
        }
