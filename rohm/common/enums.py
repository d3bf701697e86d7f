##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""This module provides the enumerations shared across Rohm."""
from enum import Enum


__all__ = ("CollectionKind", "Condition", "ErrorKind", "IndexMode", "PropertyKind")


class PropertyKind(Enum):
    """
    The storage classification of a model property.

    Attributes:
        ATTRIBUTE (str): A scalar stored directly in the record's hash.
        REFERENCE (str): A pointer to another persisted model, stored as its id.
        ARRAY (str): A bounded array persisted through a Redis list.
        COLLECTION (str): A live list/set/sorted set/map proxy.
    """

    ATTRIBUTE = "attribute"
    REFERENCE = "reference"
    ARRAY = "array"
    COLLECTION = "collection"


class CollectionKind(Enum):
    """
    The Redis structure backing a collection property.

    Attributes:
        LIST (str): Backed by a Redis list.
        SET (str): Backed by a Redis set.
        SORTED_SET (str): Backed by a Redis sorted set scored by an element attribute.
        MAP (str): Backed by a Redis hash.
    """

    LIST = "list"
    SET = "set"
    SORTED_SET = "sorted_set"
    MAP = "map"


class IndexMode(Enum):
    """
    Whether index operations are being computed for writing or for cleanup.

    Attributes:
        ADD (str): Register the record as a member of its indexes.
        REMOVE (str): Unregister the record from its indexes.
    """

    ADD = "add"
    REMOVE = "remove"


class Condition(Enum):
    """
    The comparison applied by a query constraint.

    Attributes:
        EQUALS (str): Exact match through an equality index.
        GREATERTHAN (str): Strictly greater, through a range index.
        GREATERTHANEQUALTO (str): Greater or equal, through a range index.
        LESSTHAN (str): Strictly less, through a range index.
        LESSTHANEQUALTO (str): Less or equal, through a range index.
    """

    EQUALS = "equals"
    GREATERTHAN = "greater_than"
    GREATERTHANEQUALTO = "greater_than_equal_to"
    LESSTHAN = "less_than"
    LESSTHANEQUALTO = "less_than_equal_to"

    @property
    def is_range(self) -> bool:
        """True for every condition that needs a range index."""
        return self is not Condition.EQUALS


class ErrorKind(Enum):
    """
    Machine-readable kinds carried by every Rohm error.
    """

    # Validation
    MISSING_ID_PROPERTY = "Model declares no id property"
    DUPLICATE_ID_PROPERTY = "Model declares more than one id property"
    INVALID_ID_PROPERTY = "Id property cannot carry other classifications"
    ATTRIBUTE_AND_REFERENCE = "Property is both an attribute and a reference"
    INVALID_HASH_TAG = "Hash-tagged property is not an attribute"
    NULL_OR_EMPTY_HASH_TAG = "Hash-tagged property has a null or empty value"
    MISSING_HASH_TAG = "Query on a hash-tagged model does not identify a hash tag"
    INVALID_COMPARABLE = "Comparable property is not an indexed numeric attribute"
    MISSING_INDEXED = "Property is not indexed"
    MISSING_COMPARABLE = "Property is not comparable"
    INVALID_VALUE = "Value is null or empty"
    NO_SUCH_PROPERTY = "Model has no such property"
    INVALID_ARRAY_BOUNDS = "Array length exceeds its declared bound or the bound is invalid"
    INVALID_COLLECTION = "Property has conflicting collection classifications"
    UNSUPPORTED_ATTRIBUTE = "Attribute type is not supported"
    INVALID_MODEL = "Class is not a persistable model"
    # Referential
    MISSING_ID = "Referenced model has no id"
    # Concurrency and store
    CONCURRENT_MODIFICATION = "Watched record changed before the transaction committed"
    STORE_UNAVAILABLE = "No usable store connection"
    STORE_FAILURE = "Store command failed"
