from cooksmart.models import GenerationRequest


PREAMBLE = "Generate a meal based on the following preferences:"

FORMAT = (
    "Provide a title, a list of ingredients, and step-by-step instructions. "
    "Format the output clearly."
)


class MealPrompt:
    """System prompt for one generation.

    The preferences always appear in the same order: meal type, cuisine, diet
    concerns, cooking time, servings, target calories.
    """

    def __init__(self, request: GenerationRequest) -> None:
        self.request = request

    @property
    def parts(self) -> list[str]:
        r = self.request
        return [
            PREAMBLE,
            f"Meal Type: {r.meal_type.value}",
            f"Cuisine: {r.cuisine}",
            f"Dietary Concerns: {','.join(r.diet_concerns)}",
            f"Cooking Time: {r.cooking_time} minutes",
            f"Servings: {r.servings}",
            f"Target Calories per Serving: {r.target_calories}",
            FORMAT,
        ]

    @property
    def content(self) -> str:
        return " ".join(self.parts)

    def __str__(self) -> str:
        return self.content

    def to_messages(self) -> list[dict[str, str]]:
        return [{"role": "system", "content": self.content}]
