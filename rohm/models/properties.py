##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Declarations of model properties.

A model class lists its properties explicitly through
`declare_properties()`; the schema registry validates and compiles that list
once per class. Nothing here inspects type hints at run time.
"""
from dataclasses import dataclass
from typing import Optional

from rohm.common.enums import CollectionKind


@dataclass(frozen=True)
class Property:
    """
    One declared property of a model.

    Use the factory classmethods rather than the constructor; the constructor
    is kept open so conflicting declarations can be detected by the registry.

    Attributes:
        name: The attribute name on the model instance.
        value_type: The scalar type of an attribute, or the element type of
            an array/collection (a scalar type or a model class).
        is_id: True for the id property.
        attribute: True for scalar attributes.
        reference: The target model class of a reference.
        indexed: Maintain an equality index for this property.
        comparable: Also maintain a range index (numeric attributes only).
        hash_tag: Use this attribute's value as a hash tag for every index key.
        array_length: The bound of an array property.
        collection: The structure backing a collection property.
        key_type: The key type of a map collection.
        sort_by: The element attribute scoring a sorted-set collection.
    """

    name: str
    value_type: Optional[type] = None
    is_id: bool = False
    attribute: bool = False
    reference: Optional[type] = None
    indexed: bool = False
    comparable: bool = False
    hash_tag: bool = False
    array_length: Optional[int] = None
    collection: Optional[CollectionKind] = None
    key_type: Optional[type] = None
    sort_by: Optional[str] = None

    @classmethod
    def id(cls, name: str = "id") -> "Property":
        """Declare the id property."""
        return cls(name, value_type=int, is_id=True)

    @classmethod
    def attribute_of(
        cls,
        name: str,
        value_type: type = str,
        indexed: bool = False,
        comparable: bool = False,
        hash_tag: bool = False,
    ) -> "Property":
        """
        Declare a scalar attribute.

        Args:
            name: The attribute name.
            value_type: One of the supported scalar types.
            indexed: Maintain an equality index.
            comparable: Maintain a range index; requires `indexed`.
            hash_tag: Use the value as a hash tag for every index key of the model.
        """
        return cls(
            name, value_type=value_type, attribute=True, indexed=indexed, comparable=comparable, hash_tag=hash_tag
        )

    @classmethod
    def reference_to(cls, name: str, target: type, indexed: bool = False) -> "Property":
        """
        Declare a reference to another model, stored as the target's id.

        Args:
            name: The attribute name.
            target: The referenced model class.
            indexed: Maintain an equality index on the target id and drill-down
                indexes on the target's indexed attributes.
        """
        return cls(name, value_type=target, reference=target, indexed=indexed)

    @classmethod
    def array(cls, name: str, of: type, length: int, indexed: bool = False) -> "Property":
        """
        Declare a bounded array of scalars or models.

        Args:
            name: The attribute name.
            of: The element type (scalar type or model class).
            length: The maximum number of elements.
            indexed: Maintain a membership index over the elements.
        """
        return cls(name, value_type=of, array_length=length, indexed=indexed)

    @classmethod
    def collection_of(
        cls,
        name: str,
        kind: CollectionKind,
        of: type,
        key_type: type = None,
        by: str = None,
        indexed: bool = False,
    ) -> "Property":
        """
        Declare a live collection property.

        Args:
            name: The attribute name.
            kind: The backing structure.
            of: The element (or map value) type.
            key_type: The key type of a map.
            by: The element attribute used as score by a sorted set.
            indexed: Maintain a membership index over the elements.
        """
        return cls(name, value_type=of, collection=kind, key_type=key_type, sort_by=by, indexed=indexed)
