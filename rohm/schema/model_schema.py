##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Compiled, validated view of a model's property declarations.

A [`ModelSchema`][schema.model_schema.ModelSchema] is computed once per
model class by the [`SchemaRegistry`][schema.registry.SchemaRegistry]. It
classifies every property into a [`PropertyKind`][common.enums.PropertyKind]
and exposes lookup tables so callers never re-derive whether a property is
indexed, comparable, hash-tagged and so on.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type

from rohm.codec import is_numeric, is_supported_scalar
from rohm.common.enums import CollectionKind, ErrorKind, PropertyKind
from rohm.exceptions import ValidationError
from rohm.models.base_model import BaseModel
from rohm.models.properties import Property


LOG = logging.getLogger(__name__)


def is_model_class(value_type) -> bool:
    """Whether `value_type` is a persistable model class."""
    return isinstance(value_type, type) and issubclass(value_type, BaseModel) and value_type is not BaseModel


@dataclass(frozen=True)
class SchemaProperty:
    """
    A validated property of a [`ModelSchema`][schema.model_schema.ModelSchema].

    Attributes:
        name: The attribute name on the model instance.
        kind: The storage classification.
        value_type: The scalar type, reference target, or element type.
        indexed: Whether an equality index is maintained.
        comparable: Whether a range index is maintained.
        hash_tagged: Whether the value contributes a hash tag.
        array_length: The bound of an array.
        collection: The structure backing a collection.
        key_type: The key type of a map collection.
        sort_by: The element attribute scoring a sorted-set collection.
    """

    name: str
    kind: PropertyKind
    value_type: Optional[type] = None
    indexed: bool = False
    comparable: bool = False
    hash_tagged: bool = False
    array_length: Optional[int] = None
    collection: Optional[CollectionKind] = None
    key_type: Optional[type] = None
    sort_by: Optional[str] = None

    @property
    def field_name(self) -> str:
        """The name used in the record hash and in index keys (`<name>_id` for references)."""
        return f"{self.name}_id" if self.kind is PropertyKind.REFERENCE else self.name

    @property
    def target(self) -> Optional[type]:
        """The referenced model class of a reference property."""
        return self.value_type if self.kind is PropertyKind.REFERENCE else None

    @property
    def holds_models(self) -> bool:
        """Whether the elements of an array or collection are models stored by id."""
        return self.kind in (PropertyKind.ARRAY, PropertyKind.COLLECTION) and is_model_class(self.value_type)


class ModelSchema:
    """
    The compiled schema of one model class.

    Attributes:
        model_class: The model class this schema describes.
        type_name: The root segment of every key of the type.
        id_name: The name of the id property.
        properties: The non-id properties in declaration order.
        attributes: Attribute properties by name.
        references: Reference properties by name.
        indexed: Indexed properties by name.
        comparable: Comparable properties by name.
        hash_tagged: Hash-tagged properties by name.
        arrays: Array properties by name.
        collections: Collection properties by name.
    """

    def __init__(self, model_class: Type[BaseModel], id_name: str, properties: List[SchemaProperty]):
        self.model_class: Type[BaseModel] = model_class
        self.type_name: str = model_class.__name__
        self.id_name: str = id_name
        self.properties: Tuple[SchemaProperty] = tuple(properties)
        self._by_name: Dict[str, SchemaProperty] = {prop.name: prop for prop in properties}

        self.attributes = self._select(lambda p: p.kind is PropertyKind.ATTRIBUTE)
        self.references = self._select(lambda p: p.kind is PropertyKind.REFERENCE)
        self.indexed = self._select(lambda p: p.indexed)
        self.comparable = self._select(lambda p: p.comparable)
        self.hash_tagged = self._select(lambda p: p.hash_tagged)
        self.arrays = self._select(lambda p: p.kind is PropertyKind.ARRAY)
        self.collections = self._select(lambda p: p.kind is PropertyKind.COLLECTION)

    def _select(self, predicate) -> Dict[str, SchemaProperty]:
        return {prop.name: prop for prop in self.properties if predicate(prop)}

    def get_property(self, name: str) -> SchemaProperty:
        """
        Look up a non-id property.

        Args:
            name: The property name.

        Returns:
            The compiled property.

        Raises:
            ValidationError: If the model has no such property.
        """
        try:
            return self._by_name[name]
        except KeyError as exc:
            raise ValidationError(f"{self.type_name} has no property '{name}'", ErrorKind.NO_SUCH_PROPERTY) from exc

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __repr__(self) -> str:
        return f"ModelSchema({self.type_name}, id={self.id_name!r}, properties={list(self._by_name)})"

    @classmethod
    def compile(cls, model_class: Type[BaseModel]) -> "ModelSchema":
        """
        Validate the declarations of a model class and compile its schema.

        Args:
            model_class: The model class to compile.

        Returns:
            The compiled schema.

        Raises:
            ValidationError: If the class or any of its declarations is invalid.
        """
        if not is_model_class(model_class):
            raise ValidationError(f"{model_class!r} is not a subclass of BaseModel", ErrorKind.INVALID_MODEL)

        type_name = model_class.__name__
        field_names = {field.name for field in model_class.get_class_fields()}
        declarations = model_class.declare_properties()

        id_names = []
        properties = []
        seen = set()
        for declared in declarations:
            if not isinstance(declared, Property):
                raise ValidationError(
                    f"{type_name} declared {declared!r}, which is not a Property", ErrorKind.INVALID_MODEL
                )
            if declared.name in seen:
                raise ValidationError(f"{type_name} declares '{declared.name}' twice", ErrorKind.INVALID_MODEL)
            if declared.name not in field_names:
                raise ValidationError(
                    f"{type_name} declares '{declared.name}' but has no such field", ErrorKind.NO_SUCH_PROPERTY
                )
            seen.add(declared.name)

            if declared.is_id:
                _validate_id(type_name, declared)
                id_names.append(declared.name)
            else:
                properties.append(_compile_property(type_name, declared))

        if not id_names:
            raise ValidationError(f"{type_name} declares no id property", ErrorKind.MISSING_ID_PROPERTY)
        if len(id_names) > 1:
            raise ValidationError(f"{type_name} declares id properties {id_names}", ErrorKind.DUPLICATE_ID_PROPERTY)

        LOG.debug(f"Compiled schema for {type_name} with {len(properties)} properties.")
        return cls(model_class, id_names[0], properties)


def _validate_id(type_name: str, declared: Property):
    if (
        declared.attribute
        or declared.reference is not None
        or declared.indexed
        or declared.comparable
        or declared.hash_tag
        or declared.array_length is not None
        or declared.collection is not None
    ):
        raise ValidationError(
            f"Id property '{type_name}.{declared.name}' cannot carry other classifications",
            ErrorKind.INVALID_ID_PROPERTY,
        )


def _compile_property(type_name: str, declared: Property) -> SchemaProperty:
    """
    Validate one non-id declaration and classify it.

    Raises:
        ValidationError: If the declaration breaks any schema rule.
    """
    where = f"{type_name}.{declared.name}"
    is_array = declared.array_length is not None
    is_collection = declared.collection is not None

    if declared.attribute and declared.reference is not None:
        raise ValidationError(f"'{where}' is both an attribute and a reference", ErrorKind.ATTRIBUTE_AND_REFERENCE)
    if declared.hash_tag and not declared.attribute:
        raise ValidationError(f"Hash-tagged '{where}' is not an attribute", ErrorKind.INVALID_HASH_TAG)
    if (is_array and is_collection) or ((is_array or is_collection) and (declared.attribute or declared.reference)):
        raise ValidationError(f"'{where}' has conflicting classifications", ErrorKind.INVALID_COLLECTION)
    if declared.comparable and not (declared.indexed and declared.attribute and is_numeric(declared.value_type)):
        raise ValidationError(
            f"Comparable '{where}' must be an indexed int, float or Decimal attribute", ErrorKind.INVALID_COMPARABLE
        )

    if declared.attribute:
        if not is_supported_scalar(declared.value_type):
            raise ValidationError(
                f"'{where}' has unsupported type {declared.value_type!r}", ErrorKind.UNSUPPORTED_ATTRIBUTE
            )
        kind = PropertyKind.ATTRIBUTE
    elif declared.reference is not None:
        if not is_model_class(declared.reference):
            raise ValidationError(
                f"'{where}' references {declared.reference!r}, which is not a model", ErrorKind.INVALID_MODEL
            )
        kind = PropertyKind.REFERENCE
    elif is_array or is_collection:
        _validate_elements(where, declared)
        kind = PropertyKind.ARRAY if is_array else PropertyKind.COLLECTION
    else:
        raise ValidationError(
            f"'{where}' is neither an attribute, a reference nor a collection", ErrorKind.INVALID_MODEL
        )

    return SchemaProperty(
        name=declared.name,
        kind=kind,
        value_type=declared.value_type,
        indexed=declared.indexed,
        comparable=declared.comparable,
        hash_tagged=declared.hash_tag,
        array_length=declared.array_length,
        collection=declared.collection,
        key_type=(declared.key_type or str) if declared.collection is CollectionKind.MAP else None,
        sort_by=declared.sort_by,
    )


def _validate_elements(where: str, declared: Property):
    element_type = declared.value_type
    if not (is_supported_scalar(element_type) or is_model_class(element_type)):
        raise ValidationError(f"'{where}' holds unsupported elements {element_type!r}", ErrorKind.UNSUPPORTED_ATTRIBUTE)

    length = declared.array_length
    if length is not None:
        if isinstance(length, bool) or not isinstance(length, int) or length < 1:
            raise ValidationError(
                f"Array '{where}' needs a positive length, got {length!r}", ErrorKind.INVALID_ARRAY_BOUNDS
            )
        return

    if declared.collection is CollectionKind.MAP:
        if declared.key_type is not None and not is_supported_scalar(declared.key_type):
            raise ValidationError(
                f"Map '{where}' has unsupported keys {declared.key_type!r}", ErrorKind.INVALID_COLLECTION
            )
    elif declared.key_type is not None:
        raise ValidationError(
            f"Only maps take a key type, '{where}' is a {declared.collection.value}", ErrorKind.INVALID_COLLECTION
        )

    if declared.collection is CollectionKind.SORTED_SET:
        if is_model_class(element_type) and not declared.sort_by:
            raise ValidationError(
                f"Sorted set '{where}' of models needs a `by` attribute", ErrorKind.INVALID_COLLECTION
            )
        if not is_model_class(element_type) and not is_numeric(element_type):
            raise ValidationError(
                f"Sorted set '{where}' needs numeric elements or models", ErrorKind.INVALID_COLLECTION
            )
    elif declared.sort_by:
        raise ValidationError(
            f"Only sorted sets take a `by` attribute, '{where}' does not", ErrorKind.INVALID_COLLECTION
        )
