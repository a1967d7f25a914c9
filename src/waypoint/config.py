"""Navigator configuration.

NavigatorConfig is a frozen dataclass — immutable after creation, one
instance per navigator.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class NavigatorConfig:
    """Navigator configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = NavigatorConfig(use_hash=False)
    """

    # URLs: "/#/studios?limit=10" when True, "/studios?limit=10" otherwise
    use_hash: bool = True

    # Default of merge_search_parameters for Navigator.link() and Navigator.go()
    link_merges_search_parameters: bool = False
    go_merges_search_parameters: bool = True

    # Log unmatched paths at ERROR level
    log_not_found: bool = True
