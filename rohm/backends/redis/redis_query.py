##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Multi-predicate queries over the secondary indexes.

Equality constraints are answered from equality index sets. When there are
several, their intersection is materialized (SINTERSTORE) into a destination
key named after the sorted contributing keys. Range constraints read a range
index sorted set by score; when equality constraints are present, the range
index is first intersected (ZINTERSTORE, weight 1 on the range index and 0 on
the destination) so only equality-qualified ids remain, with their original
scores. The results of all range constraints are intersected.

Materialization, reads and removal of the temporary keys run in a single
MULTI/EXEC, so temporary keys never outlive the query.
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Set, Tuple, Type, Union

from rohm.backends.redis.redis_client import StoreClient, StoreOperation
from rohm.backends.redis.redis_index import encode_value, index_root
from rohm.backends.redis.redis_model_store import RedisModelStore
from rohm.codec import to_score
from rohm.common.enums import Condition, ErrorKind, PropertyKind
from rohm.exceptions import ReferentialError, ValidationError
from rohm.keys import Nest, get_hash_tag, is_hash_tag
from rohm.models.base_model import BaseModel
from rohm.query import Constraint
from rohm.schema.model_schema import ModelSchema, SchemaProperty
from rohm.schema.registry import DEFAULT_REGISTRY, SchemaRegistry
from rohm.utils import is_null_or_empty


LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedConstraint:
    """
    A validated constraint with its compared value serialized.

    Attributes:
        constraint: The original constraint.
        prop: The constrained property of the queried model.
        child: The property of the referenced model, for drill-down constraints.
        stored: The compared value as it appears in index keys.
    """

    constraint: Constraint
    prop: SchemaProperty
    child: Optional[SchemaProperty]
    stored: str

    @property
    def score(self) -> float:
        return to_score(self.stored)

    def equality_key(self, root: Nest) -> Nest:
        """Append the equality index key of this constraint to `root` (not finalized)."""
        nest = root.cat(self.prop.field_name)
        if self.child is not None:
            nest.cat(self.child.name)
        return nest.cat(self.stored)

    def range_key(self, root: Nest) -> str:
        """Build the range index key of this constraint from `root`."""
        nest = root.cat(self.prop.field_name)
        if self.child is not None:
            nest.cat(self.child.name)
        return nest.key()

    def bounds(self) -> Tuple[Union[float, str], Union[float, str]]:
        """The ZRANGEBYSCORE bounds of a range constraint."""
        condition = self.constraint.condition
        if condition is Condition.GREATERTHANEQUALTO:
            return self.score, "+inf"
        if condition is Condition.GREATERTHAN:
            return f"({self.score}", "+inf"
        if condition is Condition.LESSTHANEQUALTO:
            return "-inf", self.score
        return "-inf", f"({self.score}"


class RedisQueryEvaluator:
    """
    Resolves constraints into record ids (and models).

    Attributes:
        client (StoreClient): The store client.
        store (RedisModelStore): Loads matching models.
        registry (SchemaRegistry): The schema cache.
        cleanup_destination_keys (bool): Delete temporary keys at the end of
            each query. When False they are given a TTL instead.
        destination_key_ttl (int): The TTL, in seconds, of temporary keys
            when they are not deleted.
    """

    def __init__(
        self,
        client: StoreClient,
        store: RedisModelStore,
        registry: SchemaRegistry = None,
        cleanup_destination_keys: bool = True,
        destination_key_ttl: int = 60,
    ):
        self.client: StoreClient = client
        self.store: RedisModelStore = store
        self.registry: SchemaRegistry = registry or DEFAULT_REGISTRY
        self.cleanup_destination_keys: bool = cleanup_destination_keys
        self.destination_key_ttl: int = destination_key_ttl or 60

    def find(
        self,
        model_class: Type[BaseModel],
        constraints: Sequence[Constraint],
        return_ids_only: bool = False,
        hash_tag: str = None,
    ) -> Union[Set[int], List[BaseModel]]:
        """
        Find the models satisfying every constraint.

        Args:
            model_class: The queried model class.
            constraints: The constraints, combined with AND.
            return_ids_only: Return the matching ids instead of loading models.
            hash_tag: The hash-tag segment to search under, for hash-tagged
                models. Defaults to the tag implied by an equality constraint
                on a hash-tagged attribute.

        Returns:
            The set of matching ids, or the loaded models in id order.
            Records deleted while the query ran are skipped.

        Raises:
            ValidationError: If any constraint is invalid, or the hash tag of a
                hash-tagged model cannot be determined.
        """
        schema = self.registry.schema_for(model_class)
        if not constraints:
            raise ValidationError(
                f"A query on {schema.type_name} needs at least one constraint", ErrorKind.INVALID_VALUE
            )

        resolved = [self._resolve(schema, constraint) for constraint in constraints]
        tag = self._resolve_hash_tag(schema, resolved, hash_tag)
        ids = self._evaluate(schema, resolved, tag)
        LOG.debug(f"Query on {schema.type_name} with {len(resolved)} constraints matched {len(ids)} ids.")

        if return_ids_only:
            return ids

        models = []
        for model_id in sorted(ids):
            model = self.store.get(model_class, model_id)
            if model is not None:
                models.append(model)
        return models

    def find_by(
        self,
        model_class: Type[BaseModel],
        property_name: str,
        value: Any,
        return_ids_only: bool = False,
        hash_tag: str = None,
    ) -> Union[Set[int], List[BaseModel]]:
        """
        Find the models whose `property_name` equals `value`. For references,
        `value` is the target model or its id.
        """
        return self.find(model_class, [Constraint(property_name, Condition.EQUALS, value)], return_ids_only, hash_tag)

    def _resolve(self, schema: ModelSchema, constraint: Constraint) -> ResolvedConstraint:
        """
        Validate a constraint against the schema and serialize its value.

        Raises:
            ValidationError: If the constraint cannot be answered from the indexes.
        """
        if not isinstance(constraint, Constraint) or not isinstance(constraint.condition, Condition):
            raise ValidationError(f"{constraint!r} is not a valid constraint", ErrorKind.INVALID_VALUE)

        prop = schema.get_property(constraint.property_name)
        where = f"{schema.type_name}.{prop.name}"
        if not prop.indexed:
            raise ValidationError(f"'{where}' is not indexed", ErrorKind.MISSING_INDEXED)

        child = None
        compared = prop
        if constraint.is_drilldown():
            if prop.kind is not PropertyKind.REFERENCE:
                raise ValidationError(f"'{where}' is not a reference", ErrorKind.NO_SUCH_PROPERTY)
            child = self.registry.schema_for(prop.target).get_property(constraint.child_property)
            if child.kind is not PropertyKind.ATTRIBUTE or not child.indexed:
                raise ValidationError(f"'{where}.{child.name}' is not an indexed attribute", ErrorKind.MISSING_INDEXED)
            compared = child
            where = f"{where}.{child.name}"

        if constraint.is_range() and not compared.comparable:
            raise ValidationError(f"'{where}' is not comparable", ErrorKind.MISSING_COMPARABLE)
        if is_null_or_empty(constraint.value):
            raise ValidationError(f"The value compared with '{where}' is null or empty", ErrorKind.INVALID_VALUE)

        if compared.kind is PropertyKind.REFERENCE or compared.holds_models:
            stored = str(self._model_id(where, constraint.value))
        else:
            stored = encode_value(compared, constraint.value)
        return ResolvedConstraint(constraint, prop, child, stored)

    def _model_id(self, where: str, value: Any) -> int:
        if isinstance(value, BaseModel):
            model_id = self.store.get_id(value)
            if model_id is None:
                raise ReferentialError(f"The model compared with '{where}' has no id")
            return model_id
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"'{value}' is not an id for '{where}'", ErrorKind.INVALID_VALUE) from exc

    def _resolve_hash_tag(
        self, schema: ModelSchema, resolved: List[ResolvedConstraint], hash_tag: Optional[str]
    ) -> Optional[str]:
        """
        Pick the hash-tag segment the query runs under: the explicit one, else
        the one implied by the first (in schema order) hash-tagged attribute
        with an equality constraint.

        Raises:
            ValidationError: If the tag is malformed, or missing for a
                hash-tagged model.
        """
        if not schema.hash_tagged:
            if hash_tag:
                raise ValidationError(f"{schema.type_name} has no hash-tagged properties", ErrorKind.INVALID_HASH_TAG)
            return None

        if hash_tag:
            known = any(hash_tag.startswith("{" + f"{name}_") for name in schema.hash_tagged)
            if not is_hash_tag(hash_tag) or not known:
                raise ValidationError(
                    f"'{hash_tag}' is not a hash tag of {schema.type_name}", ErrorKind.INVALID_HASH_TAG
                )
            return hash_tag

        for name, prop in schema.hash_tagged.items():
            for entry in resolved:
                if entry.prop is prop and entry.child is None and not entry.constraint.is_range():
                    return get_hash_tag(name, entry.stored)

        raise ValidationError(
            f"Queries on {schema.type_name} need an equality constraint on one of {list(schema.hash_tagged)} "
            "or an explicit hash tag",
            ErrorKind.MISSING_HASH_TAG,
        )

    def _evaluate(self, schema: ModelSchema, resolved: List[ResolvedConstraint], hash_tag: Optional[str]) -> Set[int]:
        root = index_root(schema, hash_tag)
        equality = [entry for entry in resolved if not entry.constraint.is_range()]
        ranges = [entry for entry in resolved if entry.constraint.is_range()]

        operations: List[StoreOperation] = []
        reads: List[int] = []
        temporary: List[str] = []

        source = None
        if equality:
            for entry in equality:
                entry.equality_key(root).next()
            keys = root.keys()
            if len(keys) == 1:
                source = keys[0]
            else:
                source = root.combine_keys()
                operations.append(StoreOperation("sinterstore", (source, keys)))
                temporary.append(source)

        if not ranges:
            reads.append(len(operations))
            operations.append(StoreOperation("smembers", (source,)))

        for entry in ranges:
            read_key = entry.range_key(root)
            if source is not None:
                combiner = Nest()
                combiner.cat(read_key).next()
                combiner.cat(source).next()
                filtered = combiner.combine_keys()
                operations.append(StoreOperation("zinterstore", (filtered, {read_key: 1, source: 0})))
                temporary.append(filtered)
                read_key = filtered
            reads.append(len(operations))
            operations.append(StoreOperation("zrangebyscore", (read_key, *entry.bounds())))

        if temporary:
            if self.cleanup_destination_keys:
                operations.append(StoreOperation.delete(*temporary))
            else:
                ttl = self.destination_key_ttl
                operations.extend(StoreOperation.expire(key, ttl) for key in dict.fromkeys(temporary))

        results = self.client.apply(operations, atomic=True)

        ids: Optional[Set[int]] = None
        for index in reads:
            found = {int(member) for member in results[index]}
            ids = found if ids is None else ids & found
        return ids or set()
