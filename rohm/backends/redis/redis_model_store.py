##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Save, delete and load models in Redis while keeping their indexes in step.

A save rewrites the record and all of its index memberships in one ordered
batch:

1. SREM/ZREM the memberships of the record as it is currently stored
2. DEL the record hash
3. SADD/ZADD the memberships of the new values (plus `Type:all`)
4. HSET the record hash

When the hash tags of a record change, the membership indexes of its
arrays and collections are moved to the new tags after the batch.

Direct saves send the batch in a pipeline (or command by command) with no
rollback. Transactional saves WATCH the record key, read the stored record
through the watched connection, and commit the batch in MULTI/EXEC, so a
concurrent write to the record aborts the save as a whole.
"""
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Set, Tuple, Type

from rohm.backends.redis.redis_client import StoreClient, StoreOperation
from rohm.backends.redis.redis_collections import (
    RedisArray,
    RedisCollection,
    RedisList,
    RedisMap,
    RedisSet,
    RedisSortedSet,
)
from rohm.backends.redis.redis_id_allocator import RedisIdAllocator
from rohm.backends.redis.redis_index import IndexMaintainer, IndexPlan, all_ids_key, drilldown_field, record_key
from rohm.backends.store_base import StoreBase, T
from rohm.codec import from_store
from rohm.common.enums import CollectionKind, IndexMode
from rohm.keys import Nest
from rohm.models.base_model import BaseModel
from rohm.schema.model_schema import ModelSchema, SchemaProperty
from rohm.schema.registry import DEFAULT_REGISTRY, SchemaRegistry


LOG = logging.getLogger(__name__)

COLLECTION_PROXIES = {
    CollectionKind.LIST: RedisList,
    CollectionKind.SET: RedisSet,
    CollectionKind.SORTED_SET: RedisSortedSet,
    CollectionKind.MAP: RedisMap,
}

# Loaded models by (model class, id), shared across one load so reference cycles resolve.
IdentityMap = Dict[Tuple[Type[BaseModel], int], BaseModel]


class RedisModelStore(StoreBase[T], Generic[T]):
    """
    Persists models of any declared type.

    Attributes:
        client (StoreClient): The store client.
        registry (SchemaRegistry): The schema cache.
        indexer (IndexMaintainer): Computes index memberships.
        allocator (RedisIdAllocator): Hands out ids for new records.

    Methods:
        save: Save a model, maintaining its indexes.
        transacted_save: Save a model as one optimistic transaction.
        get: Load a model by id.
        get_all: Load every stored model of a type.
        delete: Delete a model and, optionally, its indexes and children.
        get_id: The id of a model.
        is_new: Whether a model has never been saved.
    """

    def __init__(self, client: StoreClient, registry: SchemaRegistry = None):
        """
        Initialize the store.

        Args:
            client: The store client.
            registry: The schema registry; the process-wide one by default.
        """
        self.client: StoreClient = client
        self.registry: SchemaRegistry = registry or DEFAULT_REGISTRY
        self.indexer: IndexMaintainer = IndexMaintainer(self.registry)
        self.allocator: RedisIdAllocator = RedisIdAllocator(client)

    def get_id(self, model: BaseModel) -> Optional[int]:
        """Return the id of `model`, or None if it was never saved."""
        return getattr(model, self.registry.schema_for(model).id_name, None)

    def is_new(self, model: BaseModel) -> bool:
        """Whether `model` has no id yet."""
        return self.get_id(model) is None

    # Save

    def save(self, model: T, save_children: bool = False, transactional: bool = False, use_pipeline: bool = True) -> T:
        """
        Save or update a model and its index memberships.

        Every value is validated before anything is written. New models get
        an id; collection fields are replaced with live proxies.

        Args:
            model: The model to save.
            save_children: Save referenced models (and model elements of
                arrays) first.
            transactional: Commit the record and its indexes as one optimistic
                transaction watched on the record key.
            use_pipeline: For direct saves, send the batch in one round trip.

        Returns:
            The saved model.

        Raises:
            ValidationError: If a value is invalid.
            ReferentialError: If a referenced model has not been saved.
            ConcurrencyAbort: If a transactional save lost a race.
        """
        return self._save(model, save_children, transactional, use_pipeline, set())

    def transacted_save(self, model: T, save_children: bool = False) -> T:
        """Shorthand for `save(model, save_children, transactional=True)`."""
        return self.save(model, save_children=save_children, transactional=True)

    def _save(self, model: T, save_children: bool, transactional: bool, use_pipeline: bool, visited: Set[int]) -> T:
        visited.add(id(model))
        schema = self.registry.schema_for(model)

        if save_children:
            for child in self._children(model, schema):
                if id(child) not in visited:
                    self._save(child, save_children, transactional, use_pipeline, visited)

        add_plan = self.indexer.compute_operations(model, schema, IndexMode.ADD)
        new = self.is_new(model)
        if new:
            setattr(model, schema.id_name, self.allocator.allocate(schema))
        model_id = self.get_id(model)
        key = record_key(schema, model_id)
        add_plan.set_keys.append(all_ids_key(schema))

        if transactional:
            LOG.debug(f"Saving {key} in a transaction...")
            with self.client.watch(key) as transaction:
                persisted = self._persisted(schema, model_id, transaction.hgetall())
                transaction.commit(self._save_operations(schema, model_id, persisted, add_plan))
        else:
            LOG.debug(f"Saving {key}...")
            persisted = None if new else self._persisted(schema, model_id, self.client.hgetall(key))
            self.client.apply(self._save_operations(schema, model_id, persisted, add_plan), pipeline=use_pipeline)

        if persisted is not None:
            self._move_memberships(model, persisted, schema, model_id)
        for name, values in add_plan.pending_arrays.items():
            self._array_proxy(model, schema, schema.arrays[name], model_id).write(values)
        self._attach_collections(model, schema, model_id)

        LOG.debug(f"Successfully saved {key}.")
        return model

    def _save_operations(
        self, schema: ModelSchema, model_id: int, persisted: Optional[BaseModel], add_plan: IndexPlan
    ) -> List[StoreOperation]:
        key = record_key(schema, model_id)
        operations = []
        if persisted is not None:
            operations.extend(self.indexer.compute_operations(persisted, schema, IndexMode.REMOVE).operations(model_id))
        operations.append(StoreOperation.delete(key))
        operations.extend(add_plan.operations(model_id))
        operations.append(StoreOperation.hset(key, {schema.id_name: str(model_id), **add_plan.field_map}))
        return operations

    def _persisted(self, schema: ModelSchema, model_id: int, raw: Dict[str, str]) -> Optional[BaseModel]:
        return self._snapshot(schema, model_id, raw) if raw else None

    def _move_memberships(self, model: BaseModel, persisted: BaseModel, schema: ModelSchema, model_id: int):
        """
        Move the membership indexes of arrays and collections to the hash tags
        of `model` when they differ from the tags `persisted` was stored under.
        """
        proxies = [self._array_proxy(model, schema, prop, model_id) for prop in schema.arrays.values()]
        proxies += [self._collection_proxy(model, schema, prop, model_id) for prop in schema.collections.values()]
        for proxy in proxies:
            previous = self.indexer.membership_prefixes(persisted, schema, proxy.prop)
            if previous != proxy.index_prefixes:
                LOG.debug(f"Moving the membership index of '{proxy.key}' to {proxy.index_prefixes}.")
                proxy.move_index(previous)

    def _children(self, model: BaseModel, schema: ModelSchema) -> Iterator[BaseModel]:
        for prop in schema.references.values():
            target = getattr(model, prop.name, None)
            if isinstance(target, BaseModel):
                yield target
        for prop in schema.arrays.values():
            if prop.holds_models:
                for element in getattr(model, prop.name, None) or []:
                    if isinstance(element, BaseModel):
                        yield element

    # Load

    def get(self, model_class: Type[T], model_id: Any) -> Optional[T]:
        """
        Load a model with its references, arrays and collection proxies.

        Args:
            model_class: The model class.
            model_id: The id of the record.

        Returns:
            The model, or None if no such record exists.
        """
        if model_id is None:
            return None
        return self._load(model_class, int(model_id), {})

    def get_all(self, model_class: Type[T]) -> List[T]:
        """
        Load every stored model of a type, in id order.

        Args:
            model_class: The model class.

        Returns:
            The loaded models.
        """
        schema = self.registry.schema_for(model_class)
        LOG.info(f"Fetching all {schema.type_name} records from Redis...")
        seen: IdentityMap = {}
        models = []
        for model_id in sorted(int(raw_id) for raw_id in self.client.smembers(all_ids_key(schema))):
            model = self._load(model_class, model_id, seen)
            if model is not None:
                models.append(model)
            else:
                LOG.warning(f"{schema.type_name} with id '{model_id}' is listed but could not be retrieved.")
        LOG.info(f"Successfully retrieved {len(models)} {schema.type_name} records from Redis.")
        return models

    def _load(self, model_class: Type[T], model_id: int, seen: IdentityMap) -> Optional[T]:
        marker = (model_class, model_id)
        if marker in seen:
            return seen[marker]
        schema = self.registry.schema_for(model_class)
        raw = self.client.hgetall(record_key(schema, model_id))
        if not raw:
            return None
        return self._hydrate(schema, model_id, raw, seen)

    def _snapshot(self, schema: ModelSchema, model_id: int, raw: Dict[str, str]) -> BaseModel:
        """
        Rebuild a stored record as its index cleanup needs it. Nothing but the
        record hash is read: references become stubs holding the target id and
        the drill-down values indexed with the record.
        """
        return self._hydrate(schema, model_id, raw, {}, snapshot=True)

    def _hydrate(
        self, schema: ModelSchema, model_id: int, raw: Dict[str, str], seen: IdentityMap, snapshot: bool = False
    ) -> BaseModel:
        """
        Build a model from its record hash.

        Args:
            schema: The schema of the model.
            model_id: The id of the record.
            raw: The record hash.
            seen: The identity map of the current load.
            snapshot: Build an index snapshot instead of loading the whole
                graph: unwritten attributes stay None, references are stubs
                and arrays and collections are left out.

        Returns:
            The model.
        """
        values = {schema.id_name: model_id}
        for prop in schema.attributes.values():
            stored = raw.get(prop.name)
            # Unwritten attributes were never indexed; snapshots keep them unset.
            values[prop.name] = None if stored is None and snapshot else from_store(prop.value_type, stored)
        model = schema.model_class.from_dict(values)
        seen[(schema.model_class, model_id)] = model

        for prop in schema.references.values():
            raw_id = raw.get(prop.field_name)
            if not raw_id:
                continue
            if snapshot:
                setattr(model, prop.name, self._reference_stub(prop, int(raw_id), raw))
            else:
                setattr(model, prop.name, self._load(prop.target, int(raw_id), seen))

        if not snapshot:
            for prop in schema.arrays.values():
                setattr(model, prop.name, self._array_proxy(model, schema, prop, model_id).read())
            self._attach_collections(model, schema, model_id, seed=False)
        return model

    def _reference_stub(self, prop: SchemaProperty, target_id: int, raw: Dict[str, str]) -> BaseModel:
        target_schema = self.registry.schema_for(prop.target)
        values = {target_schema.id_name: target_id}
        for child in target_schema.attributes.values():
            stored = raw.get(drilldown_field(prop, child))
            values[child.name] = None if stored is None else from_store(child.value_type, stored)
        return target_schema.model_class.from_dict(values)

    # Delete

    def delete(
        self, model_class: Type[T], model_id: Any, delete_indexes: bool = True, delete_children: bool = False
    ) -> bool:
        """
        Delete a record.

        The id is always removed from `Type:all`; arrays and collections are
        always cleared.

        Args:
            model_class: The model class.
            model_id: The id of the record.
            delete_indexes: Remove the record's index memberships.
            delete_children: Recursively delete referenced records with the
                same flags.

        Returns:
            True if the record existed and was removed.
        """
        return self._delete(model_class, int(model_id), delete_indexes, delete_children, set())

    def _delete(
        self,
        model_class: Type[T],
        model_id: int,
        delete_indexes: bool,
        delete_children: bool,
        visited: Set[Tuple[Type[BaseModel], int]],
    ) -> bool:
        visited.add((model_class, model_id))
        schema = self.registry.schema_for(model_class)
        key = record_key(schema, model_id)
        LOG.info(f"Attempting to delete {key} from Redis...")

        raw = self.client.hgetall(key)
        if not raw:
            LOG.debug(f"{key} does not exist; nothing to delete.")
            return False
        persisted = self._snapshot(schema, model_id, raw)

        operations = []
        if delete_indexes:
            operations.extend(self.indexer.compute_operations(persisted, schema, IndexMode.REMOVE).operations(model_id))
        operations.append(StoreOperation.srem(all_ids_key(schema), str(model_id)))
        self.client.apply(operations)

        if delete_children:
            for prop in schema.references.values():
                target = getattr(persisted, prop.name, None)
                if target is None:
                    continue
                target_id = self.get_id(target)
                if (prop.target, target_id) not in visited:
                    self._delete(prop.target, target_id, delete_indexes, delete_children, visited)

        for prop in schema.arrays.values():
            self._array_proxy(persisted, schema, prop, model_id).clear()
        for prop in schema.collections.values():
            self._collection_proxy(persisted, schema, prop, model_id).clear()

        removed = self.client.delete(key) > 0
        LOG.info(f"Successfully deleted {key} from Redis.")
        return removed

    # Arrays and collections

    def _proxy_args(self, model: BaseModel, schema: ModelSchema, prop: SchemaProperty, model_id: int) -> Dict:
        return {
            "client": self.client,
            "key": Nest(schema.type_name).cat(model_id).cat(prop.name).key(),
            "prop": prop,
            "owner_id": model_id,
            "store": self,
            "index_prefixes": self.indexer.membership_prefixes(model, schema, prop),
        }

    def _array_proxy(self, model: BaseModel, schema: ModelSchema, prop: SchemaProperty, model_id: int) -> RedisArray:
        return RedisArray(**self._proxy_args(model, schema, prop, model_id))

    def _collection_proxy(
        self, model: BaseModel, schema: ModelSchema, prop: SchemaProperty, model_id: int
    ) -> RedisCollection:
        return COLLECTION_PROXIES[prop.collection](**self._proxy_args(model, schema, prop, model_id))

    def _attach_collections(self, model: BaseModel, schema: ModelSchema, model_id: int, seed: bool = True):
        """
        Replace every collection field with a live proxy. With `seed`, plain
        containers found on the field become the new contents of the collection.
        """
        for prop in schema.collections.values():
            current = getattr(model, prop.name, None)
            proxy = self._collection_proxy(model, schema, prop, model_id)
            if (
                isinstance(current, RedisCollection)
                and current.owner_id == model_id
                and current.index_prefixes == proxy.index_prefixes
            ):
                continue
            if seed and current is not None and not isinstance(current, RedisCollection):
                proxy.clear()
                if prop.collection is CollectionKind.MAP:
                    proxy.update(current)
                elif prop.collection is CollectionKind.LIST:
                    proxy.extend(current)
                else:
                    for element in current:
                        proxy.add(element)
            setattr(model, prop.name, proxy)
