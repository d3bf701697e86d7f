##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Secondary index maintenance.

This module works out which index structures a record belongs to:

- equality index, a set of ids: `Type:[{tag}:]<prop>:<value>`
- range index, a sorted set of ids scored by value: `Type:[{tag}:]<prop>`
- reference equality index: `Type:[{tag}:]<ref>_id:<targetId>`
- drill-down indexes on the referenced model's indexed attributes:
  `Type:[{tag}:]<ref>_id:<childProp>:<childValue>` and `Type:[{tag}:]<ref>_id:<childProp>`

The child values behind the drill-down entries are kept in the record hash
under `<ref>_id:<childProp>`, so the entries can be removed after the
referenced model changes or disappears.

The same traversal serves both writing (ADD) and cleanup (REMOVE). Cleanup
is always computed from the record as it is currently stored, which makes
it the exact mirror of the ADD pass that wrote it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from rohm.backends.redis.redis_client import StoreOperation
from rohm.codec import normalize, to_score, to_store
from rohm.common.enums import ErrorKind, IndexMode, PropertyKind
from rohm.exceptions import ReferentialError, ValidationError
from rohm.keys import Nest, get_hash_tag
from rohm.models.base_model import BaseModel
from rohm.schema.model_schema import ModelSchema, SchemaProperty
from rohm.schema.registry import DEFAULT_REGISTRY, SchemaRegistry
from rohm.utils import is_null_or_empty


LOG = logging.getLogger(__name__)


def index_root(schema: ModelSchema, hash_tag: str = None) -> Nest:
    """
    Create a key builder rooted at `Type` or `Type:{hashTag}`.

    Args:
        schema: The schema of the indexed type.
        hash_tag: An optional hash-tag segment.

    Returns:
        The key builder.
    """
    nest = Nest(schema.type_name)
    if hash_tag:
        nest = nest.cat(hash_tag).fork()
    return nest


def record_key(schema: ModelSchema, model_id: Any) -> str:
    """The key of the hash holding a record."""
    return Nest(schema.type_name).cat(model_id).key()


def all_ids_key(schema: ModelSchema) -> str:
    """The key of the set holding every id of a type."""
    return Nest(schema.type_name).cat("all").key()


def drilldown_field(prop: SchemaProperty, child: SchemaProperty) -> str:
    """The record hash field keeping the child value indexed under a drill-down key."""
    return Nest(prop.field_name).cat(child.name).key()


def encode_value(prop: SchemaProperty, value: Any) -> str:
    """
    Serialize an attribute value (or a collection element) the way it appears
    in index keys and record hashes.
    """
    return to_store(normalize(prop.value_type, value))


@dataclass
class IndexPlan:
    """
    The index memberships (and, for ADD, the hash fields) of one record.

    Attributes:
        mode: Whether the memberships are being added or removed.
        field_map: The record hash fields, without the id (ADD only).
        set_keys: Equality index keys the record is a member of.
        sorted_keys: `(range index key, score)` pairs the record is a member of.
        pending_arrays: Array values to write once the record exists (ADD only).
    """

    mode: IndexMode
    field_map: Dict[str, str] = field(default_factory=dict)
    set_keys: List[str] = field(default_factory=list)
    sorted_keys: List[Tuple[str, float]] = field(default_factory=list)
    pending_arrays: Dict[str, List] = field(default_factory=dict)

    def operations(self, model_id: int) -> List[StoreOperation]:
        """
        Turn the memberships into store operations for record `model_id`:
        every set operation first, then every sorted-set operation.

        Args:
            model_id: The id of the record.

        Returns:
            The ordered operations.
        """
        member = str(model_id)
        if self.mode is IndexMode.ADD:
            set_ops = [StoreOperation.sadd(key, member) for key in self.set_keys]
            sorted_ops = [StoreOperation.zadd(key, member, score) for key, score in self.sorted_keys]
        else:
            set_ops = [StoreOperation.srem(key, member) for key in self.set_keys]
            sorted_ops = [StoreOperation.zrem(key, member) for key, _ in self.sorted_keys]
        return set_ops + sorted_ops


class IndexMaintainer:
    """
    Computes the index memberships implied by a model's values.

    Attributes:
        registry (SchemaRegistry): Used to compile the schemas of referenced models.
    """

    def __init__(self, registry: SchemaRegistry = None):
        self.registry: SchemaRegistry = registry or DEFAULT_REGISTRY

    def active_hash_tags(self, model: BaseModel, schema: ModelSchema) -> List[Optional[str]]:
        """
        Compute the hash-tag segments of a model.

        Args:
            model: The model.
            schema: The schema of the model.

        Returns:
            One segment per hash-tagged attribute, or `[None]` for a type with
            no hash-tagged attributes.

        Raises:
            ValidationError: If a hash-tagged attribute is null or empty.
        """
        tags = []
        for prop in schema.hash_tagged.values():
            value = getattr(model, prop.name, None)
            if is_null_or_empty(value):
                raise ValidationError(
                    f"Hash-tagged '{schema.type_name}.{prop.name}' is null or empty", ErrorKind.NULL_OR_EMPTY_HASH_TAG
                )
            tags.append(get_hash_tag(prop.name, encode_value(prop, value)))
        return tags or [None]

    def membership_prefixes(self, model: BaseModel, schema: ModelSchema, prop: SchemaProperty) -> List[str]:
        """
        The key prefixes of the membership index of an indexed array or
        collection, one per active hash tag. Element keys are `<prefix>:<element>`.
        """
        if not prop.indexed:
            return []
        return [index_root(schema, tag).cat(prop.name).key() for tag in self.active_hash_tags(model, schema)]

    def reference_id(self, model: BaseModel, prop: SchemaProperty, value: Any) -> int:
        """
        Resolve the id stored for a reference value.

        Args:
            model: The referencing model, used in error messages.
            prop: The reference property.
            value: The referenced model, or an already-resolved id.

        Returns:
            The target id.

        Raises:
            ReferentialError: If the referenced model has not been saved.
        """
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        target_schema = self.registry.schema_for(prop.value_type)
        target_id = getattr(value, target_schema.id_name, None)
        if target_id is None:
            raise ReferentialError(
                f"{type(model).__name__}.{prop.name} references a {target_schema.type_name} that has no id; "
                "save it first or use save_children"
            )
        return target_id

    def compute_operations(self, model: BaseModel, schema: ModelSchema, mode: IndexMode) -> IndexPlan:
        """
        Compute the index memberships of a model.

        Collections are skipped; their proxies maintain their own membership
        indexes. Arrays are validated and handed back as pending writes.

        Args:
            model: The model whose values are indexed. For REMOVE this must be
                the record as currently stored.
            schema: The schema of the model.
            mode: ADD or REMOVE.

        Returns:
            The plan.

        Raises:
            ValidationError: On invalid hash-tag, attribute or array values.
            ReferentialError: If a referenced model has no id.
        """
        plan = IndexPlan(mode)
        roots = [index_root(schema, tag) for tag in self.active_hash_tags(model, schema)]

        for prop in schema.properties:
            value = getattr(model, prop.name, None)
            if prop.kind is PropertyKind.COLLECTION or value is None:
                continue
            if prop.kind is PropertyKind.ARRAY:
                if mode is IndexMode.ADD:
                    plan.pending_arrays[prop.name] = self._check_array(model, prop, value)
            elif prop.kind is PropertyKind.REFERENCE:
                self._plan_reference(plan, roots, model, prop, value)
            else:
                self._plan_attribute(plan, roots, prop, value)

        LOG.debug(
            f"{mode.name} plan for {schema.type_name}: {len(plan.set_keys)} set and "
            f"{len(plan.sorted_keys)} sorted-set memberships."
        )
        return plan

    def _plan_attribute(self, plan: IndexPlan, roots: List[Nest], prop: SchemaProperty, value: Any):
        stored = encode_value(prop, value)
        if plan.mode is IndexMode.ADD:
            plan.field_map[prop.name] = stored
        if not prop.indexed or is_null_or_empty(value):
            return

        for root in roots:
            plan.set_keys.append(root.cat(prop.name).cat(stored).key())
            if prop.comparable:
                plan.sorted_keys.append((root.cat(prop.name).key(), to_score(stored)))

    def _plan_reference(self, plan: IndexPlan, roots: List[Nest], model: BaseModel, prop: SchemaProperty, value: Any):
        target_id = self.reference_id(model, prop, value)
        if plan.mode is IndexMode.ADD:
            plan.field_map[prop.field_name] = str(target_id)
        if not prop.indexed:
            return

        for root in roots:
            plan.set_keys.append(root.cat(prop.field_name).cat(target_id).key())

        # A bare id carries no child values to drill down on.
        if not isinstance(value, BaseModel):
            return

        target_schema = self.registry.schema_for(prop.target)
        for child in target_schema.attributes.values():
            child_value = getattr(value, child.name, None)
            if not child.indexed or is_null_or_empty(child_value):
                continue
            stored = encode_value(child, child_value)
            if plan.mode is IndexMode.ADD:
                plan.field_map[drilldown_field(prop, child)] = stored
            for root in roots:
                plan.set_keys.append(root.cat(prop.field_name).cat(child.name).cat(stored).key())
                if child.comparable:
                    plan.sorted_keys.append((root.cat(prop.field_name).cat(child.name).key(), to_score(stored)))

    def _check_array(self, model: BaseModel, prop: SchemaProperty, values: Any) -> List:
        values = list(values)
        where = f"{type(model).__name__}.{prop.name}"
        if len(values) > prop.array_length:
            raise ValidationError(
                f"Array '{where}' holds {len(values)} elements but is bounded to {prop.array_length}",
                ErrorKind.INVALID_ARRAY_BOUNDS,
            )
        for element in values:
            if element is None:
                raise ValidationError(f"Array '{where}' contains a null element", ErrorKind.INVALID_VALUE)
            if prop.holds_models:
                self.reference_id(model, prop, element)
            else:
                normalize(prop.value_type, element)
        return values
