"""Declarative registration of feature modules.

A feature module is a package exposing a blueprint, a ``module_metadata`` dict
and optionally ``setup_module(app)``. The factory only walks DEFAULT_MODULES.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from flask import Blueprint, Flask
from werkzeug.utils import import_string


@dataclass(frozen=True)
class ModuleDefinition:
    """Where a feature package lives and which blueprint it exports."""

    import_path: str
    attribute: str
    url_prefix: Optional[str] = None

    def load(self):
        return import_string(self.import_path)

    def blueprint_of(self, package) -> Blueprint:
        blueprint = getattr(package, self.attribute, None)
        if not isinstance(blueprint, Blueprint):
            raise TypeError(
                f"{self.import_path}.{self.attribute} is not a Flask Blueprint (got {type(blueprint).__name__})"
            )
        return blueprint


def register_modules(app: Flask, modules: Sequence[ModuleDefinition]) -> None:
    for definition in modules:
        package = definition.load()
        metadata = getattr(package, "module_metadata", {}) or {}
        if not metadata.get("enabled", True):
            app.logger.info(f"Module {definition.import_path} disabled, skipping")
            continue

        url_prefix = definition.url_prefix or metadata.get("url_prefix")
        app.register_blueprint(definition.blueprint_of(package), url_prefix=url_prefix)

        setup = getattr(package, "setup_module", None)
        if callable(setup):
            setup(app)
        app.logger.debug(f"Module '{metadata.get('name', definition.import_path)}' mounted at {url_prefix or '/'}")


def register_default_modules(app: Flask) -> None:
    register_modules(app, DEFAULT_MODULES)


DEFAULT_MODULES: Iterable[ModuleDefinition] = (
    ModuleDefinition("brainbattle_app.modules.battle", "battle_api_bp"),
)
