"""Schema.org Recipe lookup in JSON-LD and microdata."""

import logging

import extruct

logger = logging.getLogger(__name__)


def find_recipe_data(html: str, base_url: str | None = None) -> dict | None:
    """
    Return the first schema.org Recipe object embedded in the page.

    JSON-LD wins over microdata. Never raises: pages with broken
    structured data are treated as having none.
    """
    try:
        data = extruct.extract(
            html,
            base_url=base_url,
            syntaxes=["json-ld", "microdata"],
            uniform=False,
            errors="ignore",
        )
    except Exception as e:
        # extruct surfaces lxml/json errors from badly broken pages
        logger.debug(f"Structured data extraction failed: {e}")
        return None

    recipe = _find_recipe_in_json_ld(data.get("json-ld", []))
    if recipe is None:
        recipe = _find_recipe_in_microdata(data.get("microdata", []))
    return recipe


def _is_recipe_type(item_type) -> bool:
    if isinstance(item_type, list):
        return any(_is_recipe_type(t) for t in item_type)
    return isinstance(item_type, str) and item_type.rsplit("/", 1)[-1] == "Recipe"


def _find_recipe_in_json_ld(json_ld_items: list) -> dict | None:
    """Find Recipe schema in JSON-LD data (direct, nested list, or @graph)."""
    for item in json_ld_items:
        if isinstance(item, list):
            found = _find_recipe_in_json_ld(item)
            if found:
                return found
            continue

        if not isinstance(item, dict):
            continue

        if _is_recipe_type(item.get("@type", "")):
            return item

        graph = item.get("@graph", [])
        if isinstance(graph, list):
            found = _find_recipe_in_json_ld(graph)
            if found:
                return found

        # Recipe wrapped as the main entity of a WebPage
        main_entity = item.get("mainEntity")
        if isinstance(main_entity, dict) and _is_recipe_type(main_entity.get("@type", "")):
            return main_entity

    return None


def _find_recipe_in_microdata(microdata_items: list) -> dict | None:
    """Find Recipe schema in microdata."""
    for item in microdata_items:
        if isinstance(item, dict):
            item_type = item.get("type", "")
            if "Recipe" in str(item_type):
                return item.get("properties", {})
    return None
