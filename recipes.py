"""Item and recipe database for Dual Universe production chains."""

import json
import os
from dataclasses import dataclass
from functools import cache

from frozendict import frozendict
from tarjan import tarjan

# All quantities are "per minute"

_DEFAULT_RECIPES_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "recipes.json")


@dataclass(frozen=True)
class Recipe:
    """a recipe producing one item, run by one industry"""

    item: str
    quantity: float
    ingredients: frozendict
    byproducts: frozendict
    time: float

    @property
    def rate(self) -> float:
        """Units of item produced per minute by one industry."""
        return self.quantity / self.time

    def ingredient_rate(self, item: str) -> float:
        """Units of an ingredient consumed per minute by one industry.

        Precondition:
            item is one of the recipe ingredients

        Returns:
            ingredient quantity divided by recipe time
        """
        return self.ingredients[item] / self.time

    def byproduct_rate(self, item: str) -> float:
        """Units of a byproduct released per minute by one industry."""
        return self.byproducts[item] / self.time


def _check_positive(item: str, field: str, value: float) -> None:
    """Raise ValueError unless value is a positive number.

    Args:
        item: item whose recipe is being checked (for error messages)
        field: name of the checked field (for error messages)
        value: value to check

    Raises:
        ValueError: if value is not greater than zero
    """
    if not value > 0:
        raise ValueError(f"Recipe for '{item}' has invalid {field} {value}. Must be positive.")


def _find_recipe_cycles(recipes: dict[str, Recipe]) -> list[list[str]]:
    """Find groups of craftable items whose ingredients lead back to themselves.

    Precondition:
        recipes maps product items to Recipe objects

    Postcondition:
        returns every strongly connected component of the ingredient graph
        that contains a cycle (more than one item, or an item using itself)

    Args:
        recipes: mapping of product item to Recipe

    Returns:
        list of item lists, one per cycle
    """
    item_to_ingredients: dict[str, list[str]] = {}
    for item, recipe in recipes.items():
        item_to_ingredients.setdefault(item, []).extend(recipe.ingredients.keys())
        for ingredient in recipe.ingredients:
            item_to_ingredients.setdefault(ingredient, [])

    cycles = []
    for component in tarjan(item_to_ingredients):
        if len(component) > 1:
            cycles.append(sorted(component))
        elif component[0] in item_to_ingredients[component[0]]:
            cycles.append(component)
    return cycles


class RecipeBook:
    """Lookup of the single recipe producing each craftable item.

    Items without a recipe are ores: they are assumed to be supplied from
    outside the factory.
    """

    def __init__(self, recipes: dict[str, Recipe]):
        """Create a recipe book.

        Precondition:
            recipes maps product items to Recipe objects with recipe.item == key

        Postcondition:
            recipe book is ready for lookups

        Args:
            recipes: mapping of product item to Recipe

        Raises:
            ValueError: if a recipe has a non-positive time or quantity,
                or if the recipes contain a production cycle
        """
        for item, recipe in recipes.items():
            _check_positive(item, "time", recipe.time)
            _check_positive(item, "quantity", recipe.quantity)

        cycles = _find_recipe_cycles(recipes)
        if cycles:
            raise ValueError(f"Recipes contain production cycles: {cycles}")

        self._recipes = dict(recipes)

    def __len__(self) -> int:
        return len(self._recipes)

    def __contains__(self, item: str) -> bool:
        return item in self._recipes

    def is_ore(self, item: str) -> bool:
        """Check if an item is an ore (no recipe produces it)."""
        return item not in self._recipes

    def find_recipe(self, item: str) -> Recipe:
        """Get the recipe producing an item.

        Precondition:
            item is a craftable item

        Args:
            item: item to look up

        Returns:
            the Recipe producing item

        Raises:
            ValueError: if no recipe produces the item
        """
        try:
            return self._recipes[item]
        except KeyError as exc:
            raise ValueError(f"No recipe produces '{item}'") from exc

    def items(self) -> set[str]:
        """Get every item known to the recipe book.

        Returns:
            set of products, ingredients and byproducts of all recipes
        """
        all_items = set(self._recipes)
        for recipe in self._recipes.values():
            all_items.update(recipe.ingredients.keys())
            all_items.update(recipe.byproducts.keys())
        return all_items


def _create_recipe_object(item: str, recipe_data: dict) -> Recipe:
    """Create a Recipe object from its raw JSON form.

    Precondition:
        recipe_data contains "time" and "out" keys
        "in" and "byproducts" keys are optional dicts of item -> quantity

    Postcondition:
        returns a Recipe with frozen dicts for ingredients/byproducts
        ingredient order is preserved from recipe_data

    Args:
        item: product item name
        recipe_data: raw recipe dict

    Returns:
        Recipe object
    """
    return Recipe(
        item,
        float(recipe_data["out"]),
        frozendict({k: float(v) for k, v in recipe_data.get("in", {}).items()}),
        frozendict({k: float(v) for k, v in recipe_data.get("byproducts", {}).items()}),
        float(recipe_data["time"]),
    )


def recipe_book_from_json(data: dict[str, dict]) -> RecipeBook:
    """Build a RecipeBook from raw recipe data.

    Precondition:
        data maps product items to raw recipe dicts of the form
        {"time": minutes, "out": quantity, "in": {item: qty}, "byproducts": {item: qty}}

    Postcondition:
        returns RecipeBook with one Recipe per entry

    Args:
        data: raw recipe data (as loaded from JSON)

    Returns:
        RecipeBook

    Raises:
        ValueError: if a recipe is missing a field or the recipes are invalid
    """
    recipes = {}
    for item, recipe_data in data.items():
        try:
            recipes[item] = _create_recipe_object(item, recipe_data)
        except KeyError as exc:
            raise ValueError(f"Recipe for '{item}' is missing field {exc}") from exc
    return RecipeBook(recipes)


def load_recipe_book(filename: str) -> RecipeBook:
    """Load a RecipeBook from a JSON file.

    Args:
        filename: path to the recipe JSON file

    Returns:
        RecipeBook

    Raises:
        OSError: if the file cannot be read
        ValueError: if the file does not hold valid recipes
    """
    with open(filename, "r", encoding="utf-8") as f:
        data = json.load(f)
    return recipe_book_from_json(data)


@cache
def get_default_recipe_book() -> RecipeBook:
    """Get the RecipeBook for the bundled recipes.json (loaded once)."""
    return load_recipe_book(_DEFAULT_RECIPES_FILE)
