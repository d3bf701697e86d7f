##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Process-wide cache of compiled model schemas.
"""
import logging
import threading
from typing import Any, Dict, Type, Union

from rohm.models.base_model import BaseModel
from rohm.schema.model_schema import ModelSchema


LOG = logging.getLogger(__name__)


class SchemaRegistry:
    """
    Thread-safe, append-only cache of [`ModelSchema`][schema.model_schema.ModelSchema]
    objects keyed by model class.

    A schema is compiled at most once per class. Lookups of cached schemas
    never take the lock; a miss takes it and checks again before compiling,
    so concurrent first uses of a class share one compiled schema. A class
    whose declarations fail validation is never cached.

    Methods:
        schema_for: Get (compiling if needed) the schema of a model class.
    """

    def __init__(self):
        self._schemas: Dict[Type[BaseModel], ModelSchema] = {}
        self._lock = threading.Lock()

    def schema_for(self, model: Union[Type[BaseModel], Any]) -> ModelSchema:
        """
        Get the schema of a model class, compiling and caching it on first use.

        Args:
            model: A model class or an instance of one.

        Returns:
            The compiled schema.

        Raises:
            ValidationError: If the class declarations are invalid.
        """
        model_class = model if isinstance(model, type) else type(model)

        schema = self._schemas.get(model_class)
        if schema is not None:
            return schema

        with self._lock:
            schema = self._schemas.get(model_class)
            if schema is None:
                schema = ModelSchema.compile(model_class)
                self._schemas[model_class] = schema
                LOG.debug(f"Registered schema for {schema.type_name}.")
        return schema

    def __contains__(self, model_class: Type[BaseModel]) -> bool:
        return model_class in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


DEFAULT_REGISTRY = SchemaRegistry()
