##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
This module defines the abstract base class for the model stores in Rohm.

The `StoreBase` class outlines the interface for saving, loading and deleting
models. Concrete stores (e.g. the Redis-based one) inherit from it and
implement its abstract methods.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, Type, TypeVar

from rohm.models.base_model import BaseModel


T = TypeVar("T", bound=BaseModel)


class StoreBase(ABC, Generic[T]):
    """
    Base class for all stores supported in Rohm.

    Methods:
        save: Save or update a model.
        get: Load a model by id.
        get_all: Load every model of a type.
        delete: Delete a model by id.
    """

    @abstractmethod
    def save(self, model: T, save_children: bool = False, transactional: bool = False, use_pipeline: bool = True) -> T:
        """
        Save or update a model.

        Args:
            model: The model to save.
            save_children: Save referenced models first.
            transactional: Commit as one optimistic transaction.
            use_pipeline: Batch the writes of a direct save in one round trip.

        Returns:
            The saved model, with its id assigned.
        """
        raise NotImplementedError("Subclasses of `StoreBase` must implement a `save` method.")

    @abstractmethod
    def get(self, model_class: Type[T], model_id: Any) -> Optional[T]:
        """
        Load a model by id.

        Args:
            model_class: The model class.
            model_id: The id of the model.

        Returns:
            The model if found, None otherwise.
        """
        raise NotImplementedError("Subclasses of `StoreBase` must implement a `get` method.")

    @abstractmethod
    def get_all(self, model_class: Type[T]) -> List[T]:
        """
        Load every stored model of a type.

        Args:
            model_class: The model class.

        Returns:
            A list of models.
        """
        raise NotImplementedError("Subclasses of `StoreBase` must implement a `get_all` method.")

    @abstractmethod
    def delete(
        self, model_class: Type[T], model_id: Any, delete_indexes: bool = True, delete_children: bool = False
    ) -> bool:
        """
        Delete a model by id.

        Args:
            model_class: The model class.
            model_id: The id of the model.
            delete_indexes: Remove the model from its indexes.
            delete_children: Also delete referenced models.

        Returns:
            True if the model existed and was removed.
        """
        raise NotImplementedError("Subclasses of `StoreBase` must implement a `delete` method.")
