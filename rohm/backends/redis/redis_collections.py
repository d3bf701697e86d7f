##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Live proxies for array and collection properties.

Each proxy reads and writes the Redis structure at `Type:<id>:<prop>`
directly; nothing is buffered on the model. Model elements are stored as
their ids and loaded through the owning store when read. When the property
is indexed, every proxy keeps the membership index
`Type:[{tag}:]<prop>:<element>` (a set of owner ids) in step with its
contents.
"""
import logging
from collections.abc import MutableMapping, MutableSet
from typing import Any, Iterable, Iterator, List, Optional, Set, Union

from rohm.backends.redis.redis_client import StoreClient, StoreOperation
from rohm.codec import from_store, normalize, to_score, to_store
from rohm.common.enums import ErrorKind
from rohm.exceptions import ReferentialError, ValidationError
from rohm.keys import Nest
from rohm.schema.model_schema import SchemaProperty


LOG = logging.getLogger(__name__)


class RedisCollection:
    """
    Shared encoding and membership-index handling of every proxy.

    Attributes:
        client (StoreClient): The store client.
        key (str): The key of the backing structure.
        prop (SchemaProperty): The array or collection property.
        owner_id (int): The id of the model owning the collection.
        index_prefixes (List[str]): Membership index prefixes; empty when not indexed.
    """

    def __init__(
        self,
        client: StoreClient,
        key: str,
        prop: SchemaProperty,
        owner_id: int,
        store: Any = None,
        index_prefixes: List[str] = None,
    ):
        self.client: StoreClient = client
        self.key: str = key
        self.prop: SchemaProperty = prop
        self.owner_id: int = owner_id
        self.index_prefixes: List[str] = index_prefixes or []
        self._store = store

    def _encode(self, element: Any) -> str:
        if element is None:
            raise ValidationError(f"'{self.key}' cannot hold a null element", ErrorKind.INVALID_VALUE)
        if not self.prop.holds_models:
            return to_store(normalize(self.prop.value_type, element))
        if isinstance(element, int) and not isinstance(element, bool):
            return str(element)
        element_id = self._store.get_id(element)
        if element_id is None:
            raise ReferentialError(f"Cannot add an unsaved {type(element).__name__} to '{self.key}'")
        return str(element_id)

    def _decode(self, raw: str) -> Any:
        if self.prop.holds_models:
            return self._store.get(self.prop.value_type, int(raw))
        return from_store(self.prop.value_type, raw)

    def _membership_ops(self, encoded: Iterable[str], add: bool, prefixes: List[str] = None) -> List[StoreOperation]:
        owner = str(self.owner_id)
        operation = StoreOperation.sadd if add else StoreOperation.srem
        prefixes = self.index_prefixes if prefixes is None else prefixes
        return [operation(Nest(prefix).cat(value).key(), owner) for value in set(encoded) for prefix in prefixes]

    def _raw_elements(self) -> Iterable[str]:
        raise NotImplementedError

    def move_index(self, previous_prefixes: List[str]):
        """
        Move the membership index entries of the current contents from
        `previous_prefixes` to the prefixes of this proxy.

        Args:
            previous_prefixes: The prefixes the contents were indexed under.
        """
        stale = [prefix for prefix in previous_prefixes if prefix not in self.index_prefixes]
        encoded = set(self._raw_elements())
        self._apply(self._membership_ops(encoded, add=False, prefixes=stale) + self._membership_ops(encoded, add=True))

    def clear(self):
        """Remove every element and its membership index entries."""
        self._apply(self._clear_ops())

    def _clear_ops(self) -> List[StoreOperation]:
        previous = self._raw_elements() if self.index_prefixes else []
        return [StoreOperation.delete(self.key)] + self._membership_ops(previous, add=False)

    def _apply(self, operations: List[StoreOperation]):
        self.client.apply(operations)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r})"


class RedisArray(RedisCollection):
    """
    A bounded array persisted as a Redis list. The whole array is read and
    written at once.
    """

    def read(self) -> List[Any]:
        """Load every element, in order."""
        return [self._decode(raw) for raw in self.client.lrange(self.key)]

    def write(self, values: Iterable[Any]):
        """
        Replace the array contents.

        Args:
            values: The new elements.

        Raises:
            ValidationError: If there are more elements than the array bound.
        """
        values = list(values)
        if len(values) > self.prop.array_length:
            raise ValidationError(
                f"Array '{self.key}' is bounded to {self.prop.array_length} elements, got {len(values)}",
                ErrorKind.INVALID_ARRAY_BOUNDS,
            )
        encoded = [self._encode(value) for value in values]
        operations = self._clear_ops()
        if encoded:
            operations.append(StoreOperation("rpush", (self.key, *encoded)))
            operations.extend(self._membership_ops(encoded, add=True))
        self._apply(operations)
        LOG.debug(f"Wrote {len(encoded)} elements to array '{self.key}'.")

    def _raw_elements(self) -> List[str]:
        return self.client.lrange(self.key)

    def __len__(self) -> int:
        return self.client.llen(self.key)


class RedisList(RedisCollection):
    """A list collection backed by a Redis list."""

    def append(self, element: Any):
        encoded = self._encode(element)
        self._apply([StoreOperation("rpush", (self.key, encoded))] + self._membership_ops([encoded], add=True))

    def extend(self, elements: Iterable[Any]):
        encoded = [self._encode(element) for element in elements]
        if encoded:
            self._apply([StoreOperation("rpush", (self.key, *encoded))] + self._membership_ops(encoded, add=True))

    def remove(self, element: Any):
        """
        Remove the first occurrence of `element`.

        Raises:
            ValueError: If the element is not in the list.
        """
        encoded = self._encode(element)
        if not self.client.lrem(self.key, 1, encoded):
            raise ValueError(f"{element!r} is not in '{self.key}'")
        self._drop_membership_if_gone(encoded)

    def _drop_membership_if_gone(self, encoded: str):
        if self.index_prefixes and encoded not in self.client.lrange(self.key):
            self._apply(self._membership_ops([encoded], add=False))

    def _raw_elements(self) -> List[str]:
        return self.client.lrange(self.key)

    def __getitem__(self, index: int) -> Any:
        raw = self.client.lindex(self.key, index)
        if raw is None:
            raise IndexError(f"Index {index} is out of range for '{self.key}'")
        return self._decode(raw)

    def __setitem__(self, index: int, element: Any):
        previous = self.client.lindex(self.key, index)
        if previous is None:
            raise IndexError(f"Index {index} is out of range for '{self.key}'")
        encoded = self._encode(element)
        self.client.lset(self.key, index, encoded)
        if previous != encoded:
            self._apply(self._membership_ops([encoded], add=True))
            self._drop_membership_if_gone(previous)

    def __len__(self) -> int:
        return self.client.llen(self.key)

    def __iter__(self) -> Iterator[Any]:
        return iter([self._decode(raw) for raw in self.client.lrange(self.key)])

    def __contains__(self, element: Any) -> bool:
        return self._encode(element) in self.client.lrange(self.key)

    def to_list(self) -> List[Any]:
        return list(self)


class RedisSet(RedisCollection, MutableSet):
    """A set collection backed by a Redis set."""

    @classmethod
    def _from_iterable(cls, iterable):
        return set(iterable)

    def add(self, element: Any):
        encoded = self._encode(element)
        if self.client.sadd(self.key, encoded):
            self._apply(self._membership_ops([encoded], add=True))

    def discard(self, element: Any):
        encoded = self._encode(element)
        if self.client.srem(self.key, encoded):
            self._apply(self._membership_ops([encoded], add=False))

    def _raw_elements(self) -> Set[str]:
        return self.client.smembers(self.key)

    def __contains__(self, element: Any) -> bool:
        return self.client.sismember(self.key, self._encode(element))

    def __iter__(self) -> Iterator[Any]:
        return iter([self._decode(raw) for raw in self.client.smembers(self.key)])

    def __len__(self) -> int:
        return self.client.scard(self.key)


class RedisSortedSet(RedisCollection):
    """
    A sorted-set collection backed by a Redis sorted set. Model elements are
    scored by their `by` attribute, numeric elements by their own value.
    """

    def _score(self, element: Any) -> float:
        if self.prop.holds_models:
            return to_score(getattr(element, self.prop.sort_by))
        return to_score(element)

    def add(self, element: Any):
        encoded = self._encode(element)
        self.client.zadd(self.key, {encoded: self._score(element)})
        self._apply(self._membership_ops([encoded], add=True))

    def discard(self, element: Any):
        encoded = self._encode(element)
        if self.client.zrem(self.key, encoded):
            self._apply(self._membership_ops([encoded], add=False))

    def _raw_elements(self) -> List[str]:
        return self.client.zrange(self.key)

    def range_by_score(self, min_score: Union[float, str] = "-inf", max_score: Union[float, str] = "+inf") -> List[Any]:
        """
        Load the elements scored within `[min_score, max_score]`, lowest score first.
        """
        return [self._decode(raw) for raw in self.client.zrangebyscore(self.key, min_score, max_score)]

    def __contains__(self, element: Any) -> bool:
        return self.client.zscore(self.key, self._encode(element)) is not None

    def __iter__(self) -> Iterator[Any]:
        return iter([self._decode(raw) for raw in self.client.zrange(self.key)])

    def __len__(self) -> int:
        return self.client.zcard(self.key)


class RedisMap(RedisCollection, MutableMapping):
    """
    A map collection backed by a Redis hash. Keys are scalars of the
    property's key type; the membership index covers the values.
    """

    def _encode_key(self, map_key: Any) -> str:
        return to_store(normalize(self.prop.key_type, map_key))

    def _drop_membership_if_gone(self, encoded: Optional[str]):
        if encoded is not None and self.index_prefixes and encoded not in self.client.hvals(self.key):
            self._apply(self._membership_ops([encoded], add=False))

    def __getitem__(self, map_key: Any) -> Any:
        raw = self.client.hget(self.key, self._encode_key(map_key))
        if raw is None:
            raise KeyError(map_key)
        return self._decode(raw)

    def __setitem__(self, map_key: Any, value: Any):
        field_name = self._encode_key(map_key)
        encoded = self._encode(value)
        previous = self.client.hget(self.key, field_name)
        self.client.hset(self.key, mapping={field_name: encoded})
        if previous != encoded:
            self._apply(self._membership_ops([encoded], add=True))
            self._drop_membership_if_gone(previous)

    def __delitem__(self, map_key: Any):
        field_name = self._encode_key(map_key)
        previous = self.client.hget(self.key, field_name)
        if previous is None:
            raise KeyError(map_key)
        self.client.hdel(self.key, field_name)
        self._drop_membership_if_gone(previous)

    def _raw_elements(self) -> List[str]:
        return self.client.hvals(self.key)

    def __contains__(self, map_key: Any) -> bool:
        return self.client.hexists(self.key, self._encode_key(map_key))

    def __iter__(self) -> Iterator[Any]:
        return iter([from_store(self.prop.key_type, raw) for raw in self.client.hkeys(self.key)])

    def __len__(self) -> int:
        return self.client.hlen(self.key)
