from .registry import ActionHandler, ActionRegistry
from .checkout import checkout
from .mdbook import setup_mdbook
from .pages import gh_pages, publish_directory
from .rust import cargo, toolchain


def default_registry() -> ActionRegistry:
    """Built-in stand-ins for the actions the Book workflow uses."""
    registry = ActionRegistry()
    registry.register("actions/checkout", checkout)
    registry.register("actions-rs/toolchain", toolchain)
    registry.register("actions-rs/cargo", cargo)
    registry.register("peaceiris/actions-mdbook", setup_mdbook)
    registry.register("peaceiris/actions-gh-pages", gh_pages)
    return registry


__all__ = ["ActionHandler", "ActionRegistry", "default_registry", "publish_directory"]
