"""
Pricing — unit price resolution over size variants and option groups.

    from tablecart import pricing as P

    item = P.CatalogItem.from_mapping(menu_doc)
    unit = P.resolve_price(item, [P.size("L"), P.extra("Cheese")])

Option categories form a closed variant:

    SelectedOption.category ──► Axis
        size    → Size()            replaces the start price
        extras  → Extras()          + entry delta
        addons  → Addons()          + entry delta
        option  → NamedGroup(name)  + sub-option delta
"""

from tablecart.pricing._types import (
    SizeVariant,
    PricedOption,
    GroupOption,
    VariantGroup,
    CatalogItem,
    OptionCategory,
    SelectedOption,
    size,
    extra,
    addon,
    choice,
    Size,
    Extras,
    Addons,
    NamedGroup,
    Axis,
    axis_of,
)
from tablecart.pricing._resolve import (
    resolve_price,
    resolve_start,
    option_delta,
)

__all__ = (
    # Catalog
    "SizeVariant",
    "PricedOption",
    "GroupOption",
    "VariantGroup",
    "CatalogItem",
    # Selection
    "OptionCategory",
    "SelectedOption",
    "size",
    "extra",
    "addon",
    "choice",
    # Axis
    "Size",
    "Extras",
    "Addons",
    "NamedGroup",
    "Axis",
    "axis_of",
    # Resolver
    "resolve_price",
    "resolve_start",
    "option_delta",
)
