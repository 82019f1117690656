"""
Tessera Model Registry — global registry for all record types.

Lets relation declarations name their target by string
(``self.belongs_to("User")``) and resolves the name lazily, so record
types may reference each other in any declaration order.
"""

from __future__ import annotations

import logging
from typing import Dict, Type, Union, TYPE_CHECKING

from ..faults.domains import ModelNotFoundFault

if TYPE_CHECKING:
    from .base import Model

logger = logging.getLogger("tessera.models.registry")

__all__ = ["ModelRegistry"]


class ModelRegistry:
    """Global name -> record class map."""

    _models: Dict[str, Type[Model]] = {}

    @classmethod
    def register(cls, model_cls: Type[Model]) -> None:
        """Register a model class."""
        name = model_cls.__name__
        if name in cls._models and cls._models[name] is not model_cls:
            logger.warning(f"Model '{name}' re-registered, replacing previous class")
        cls._models[name] = model_cls

    @classmethod
    def get(cls, name: str) -> Type[Model]:
        """Get model class by name."""
        model_cls = cls._models.get(name)
        if model_cls is None:
            raise ModelNotFoundFault(model_name=name)
        return model_cls

    @classmethod
    def resolve(cls, target: Union[str, Type[Model]]) -> Type[Model]:
        """Accept a record class or its registered name."""
        if isinstance(target, str):
            return cls.get(target)
        return target

    @classmethod
    def all_models(cls) -> Dict[str, Type[Model]]:
        """Get all registered models."""
        return dict(cls._models)

    @classmethod
    def reset(cls) -> None:
        """Clear registry (for testing)."""
        cls._models.clear()
