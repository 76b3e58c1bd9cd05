"""Menu and footer structures built from enabled page settings."""

from typing import Dict, List, Optional, Sequence

from storefronts.models.page_setting import PageSetting


# Fixed storefront routes rendered by built-in templates.
STANDARD_ROUTES = {
    "/": "homepage",
    "/categories": "categories",
    "/products": "products",
    "/cart": "cart",
    "/checkout": "checkout",
    "/account": "account",
    "/search": "search",
}

_DETAIL_PREFIXES = {
    "/products/": "product-detail",
    "/categories/": "category-detail",
}


def standard_page_type(route: str) -> Optional[str]:
    """Built-in page type for a storefront route, or None for custom pages."""
    if route in STANDARD_ROUTES:
        return STANDARD_ROUTES[route]
    for prefix, page_type in _DETAIL_PREFIXES.items():
        if route.startswith(prefix) and len(route) > len(prefix):
            return page_type
    return None


def _label(page: PageSetting) -> str:
    return page.settings.meta_title or page.page_type


def _sort(items: List[dict]) -> None:
    items.sort(key=lambda item: item["order"])
    for item in items:
        if item["children"]:
            _sort(item["children"])


def _in_cycle(item: dict, items: Dict[str, dict]) -> bool:
    seen = set()
    current = item
    while current is not None and current["parentId"]:
        if current["id"] in seen:
            return True
        seen.add(current["id"])
        current = items.get(current["parentId"])
    return False


def build_menu(pages: Sequence[PageSetting]) -> List[dict]:
    """Menu tree of enabled pages flagged showInMenu.

    A page whose parentId names another menu page is nested under it;
    everything else is top level, after a synthetic Home entry.
    """
    items: Dict[str, dict] = {}
    for page in pages:
        if not page.settings.enabled or not page.settings.show_in_menu:
            continue
        items[page.id] = {
            "id": page.id,
            "parentId": page.parent_id,
            "order": page.order,
            "label": _label(page),
            "route": page.route,
            "children": [],
        }

    tree: List[dict] = [{"label": "Home", "route": "/", "order": -1, "children": []}]
    for item in items.values():
        parent = items.get(item["parentId"]) if item["parentId"] else None
        if parent is not None and not _in_cycle(item, items):
            parent["children"].append(item)
        else:
            tree.append(item)
    _sort(tree)
    return tree


def build_footer(pages: Sequence[PageSetting]) -> List[dict]:
    """Flat list of enabled pages flagged showInFooter, by order."""
    links = [
        {"label": _label(page), "route": page.route, "order": page.order}
        for page in pages
        if page.settings.enabled and page.settings.show_in_footer
    ]
    return sorted(links, key=lambda link: link["order"])
