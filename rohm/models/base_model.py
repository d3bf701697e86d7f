##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
This module houses the dataclass that every persistable Rohm model extends.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import Field, dataclass
from dataclasses import fields as dataclass_fields
from typing import Dict, List, Tuple, Type, TypeVar

from rohm.models.properties import Property


LOG = logging.getLogger(__name__)
T = TypeVar("T", bound="BaseModel")


@dataclass
class BaseModel(ABC):
    """
    A base class for the dataclasses Rohm persists in Redis.

    Subclasses are regular (mutable) dataclasses whose fields all have
    defaults, and which list the fields Rohm manages through
    [`declare_properties`][models.base_model.BaseModel.declare_properties].
    Fields that are not declared are left untouched by the store.

    Methods:
        declare_properties (classmethod):
            The explicit schema declaration of the model.

        to_dict:
            Convert the dataclass instance to a dictionary.

        from_dict (classmethod):
            Create an instance of the dataclass from a dictionary.

        get_instance_fields:
            Retrieve the fields associated with this dataclass instance.

        get_class_fields (classmethod):
            Retrieve the fields associated with the dataclass class itself.
    """

    @classmethod
    @abstractmethod
    def declare_properties(cls) -> List[Property]:
        """
        Declare the properties Rohm stores for this model.

        Returns:
            An ordered list of [`Property`][models.properties.Property]
            declarations; exactly one of them must be the id property.
        """
        raise NotImplementedError("Subclasses of `BaseModel` must implement a `declare_properties` method.")

    def to_dict(self) -> Dict:
        """
        Convert the dataclass to a dictionary.

        The conversion is shallow: referenced models and collection proxies
        are returned as-is rather than recursively converted, so reference
        cycles are safe.

        Returns:
            The dataclass as a dictionary.
        """
        return {field.name: getattr(self, field.name) for field in self.get_instance_fields()}

    @classmethod
    def from_dict(cls: Type[T], data: Dict) -> T:
        """
        Create an instance of the dataclass from a dictionary.

        Args:
            data: A dictionary to turn into an instance of this dataclass.

        Returns:
            An instance of the dataclass that called this.
        """
        return cls(**data)

    def get_instance_fields(self) -> Tuple[Field]:
        """
        Get the fields associated with this instance.

        Returns:
            A tuple of dataclass.Field objects representing the fields in this data class.
        """
        return dataclass_fields(self)

    @classmethod
    def get_class_fields(cls) -> Tuple[Field]:
        """
        Get the fields associated with this object.

        Returns:
            A tuple of dataclass.Field objects representing the fields in this data class.
        """
        return dataclass_fields(cls)
