##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Thin wrapper around a `redis.Redis` client.

Every command goes through [`translate_errors`][backends.redis.redis_client.translate_errors]
so callers only ever see Rohm exceptions. Writes that must happen together
are described as an ordered list of
[`StoreOperation`][backends.redis.redis_client.StoreOperation] values and
applied in one round trip, optionally inside MULTI/EXEC, or committed behind
a WATCH through a [`WatchedTransaction`][backends.redis.redis_client.WatchedTransaction].
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from rohm.exceptions import ConcurrencyAbort, GenericStoreFailure, StoreUnavailable


LOG = logging.getLogger(__name__)


@contextmanager
def translate_errors(action: str):
    """
    Convert `redis-py` exceptions raised inside the block into Rohm exceptions.

    Args:
        action: A short description of the command, used in the messages.

    Raises:
        ConcurrencyAbort: If a watched key changed before EXEC.
        StoreUnavailable: If no connection could be used.
        GenericStoreFailure: For any other Redis failure.
    """
    try:
        yield
    except WatchError as exc:
        raise ConcurrencyAbort(f"{action}: watched key was modified by another client") from exc
    except (RedisConnectionError, RedisTimeoutError) as exc:
        raise StoreUnavailable(f"{action}: {exc}") from exc
    except RedisError as exc:
        raise GenericStoreFailure(f"{action} failed: {exc}") from exc


@dataclass(frozen=True)
class StoreOperation:
    """
    One queued write, replayable against a client or a pipeline.

    Attributes:
        command: The `redis-py` method name.
        args: Positional arguments of the command.
        kwargs: Keyword arguments of the command.
    """

    command: str
    args: Tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def sadd(cls, key: str, *members: str) -> "StoreOperation":
        return cls("sadd", (key, *members))

    @classmethod
    def srem(cls, key: str, *members: str) -> "StoreOperation":
        return cls("srem", (key, *members))

    @classmethod
    def zadd(cls, key: str, member: str, score: float) -> "StoreOperation":
        return cls("zadd", (key, {member: score}))

    @classmethod
    def zrem(cls, key: str, *members: str) -> "StoreOperation":
        return cls("zrem", (key, *members))

    @classmethod
    def delete(cls, *keys: str) -> "StoreOperation":
        return cls("delete", keys)

    @classmethod
    def hset(cls, key: str, mapping: Dict[str, str]) -> "StoreOperation":
        return cls("hset", (key,), {"mapping": mapping})

    @classmethod
    def expire(cls, key: str, seconds: int) -> "StoreOperation":
        return cls("expire", (key, seconds))

    def apply_to(self, target: Union[Redis, Pipeline]) -> Any:
        """
        Run (or queue, for a pipeline) this operation.

        Args:
            target: A client or a pipeline.

        Returns:
            The command result, or the pipeline for queued commands.
        """
        return getattr(target, self.command)(*self.args, **self.kwargs)

    def __str__(self) -> str:
        return " ".join([self.command.upper(), *(str(arg) for arg in self.args)])


class WatchedTransaction:
    """
    A pipeline in the WATCH state.

    Reads run immediately on the watched connection. [`commit`][backends.redis.redis_client.WatchedTransaction.commit]
    queues the operations in MULTI and executes them; if any watched key was
    written in between, nothing is applied and `ConcurrencyAbort` is raised.

    Attributes:
        key: The watched key.
    """

    def __init__(self, pipe: Pipeline, key: str):
        self._pipe: Pipeline = pipe
        self.key: str = key

    def exists(self, key: str = None) -> bool:
        key = key or self.key
        with translate_errors(f"EXISTS {key}"):
            return bool(self._pipe.exists(key))

    def hgetall(self, key: str = None) -> Dict[str, str]:
        key = key or self.key
        with translate_errors(f"HGETALL {key}"):
            return self._pipe.hgetall(key)

    def commit(self, operations: Sequence[StoreOperation]) -> List[Any]:
        """
        Apply `operations` atomically, provided the watched key is unchanged.

        Args:
            operations: The ordered writes.

        Returns:
            The per-command results.

        Raises:
            ConcurrencyAbort: If the watched key changed since WATCH.
        """
        with translate_errors(f"EXEC behind WATCH {self.key}"):
            self._pipe.multi()
            for operation in operations:
                operation.apply_to(self._pipe)
            results = self._pipe.execute()
        LOG.debug(f"Committed {len(operations)} operations watched on '{self.key}'.")
        return results


class StoreClient:
    """
    Synchronous command interface used by every Rohm component.

    The wrapped client must be created with `decode_responses=True`.

    Attributes:
        client (Redis): The wrapped Redis client.
    """

    def __init__(self, client: Redis):
        self.client: Redis = client

    def _call(self, command: str, *args, **kwargs) -> Any:
        with translate_errors(command.upper()):
            return getattr(self.client, command)(*args, **kwargs)

    # Scalars and keys

    def get(self, key: str) -> Optional[str]:
        return self._call("get", key)

    def set(self, key: str, value: str) -> bool:
        return self._call("set", key, value)

    def incr(self, key: str) -> int:
        return self._call("incr", key)

    def delete(self, *keys: str) -> int:
        return self._call("delete", *keys) if keys else 0

    def exists(self, *keys: str) -> int:
        return self._call("exists", *keys)

    def expire(self, key: str, seconds: int) -> bool:
        return self._call("expire", key, seconds)

    # Hashes

    def hset(self, key: str, mapping: Dict[str, str]) -> int:
        return self._call("hset", key, mapping=mapping)

    def hgetall(self, key: str) -> Dict[str, str]:
        return self._call("hgetall", key)

    def hget(self, key: str, field_name: str) -> Optional[str]:
        return self._call("hget", key, field_name)

    def hdel(self, key: str, *field_names: str) -> int:
        return self._call("hdel", key, *field_names)

    def hexists(self, key: str, field_name: str) -> bool:
        return self._call("hexists", key, field_name)

    def hlen(self, key: str) -> int:
        return self._call("hlen", key)

    def hkeys(self, key: str) -> List[str]:
        return self._call("hkeys", key)

    def hvals(self, key: str) -> List[str]:
        return self._call("hvals", key)

    # Sets

    def sadd(self, key: str, *members: str) -> int:
        return self._call("sadd", key, *members)

    def srem(self, key: str, *members: str) -> int:
        return self._call("srem", key, *members)

    def smembers(self, key: str) -> set:
        return self._call("smembers", key)

    def sismember(self, key: str, member: str) -> bool:
        return bool(self._call("sismember", key, member))

    def scard(self, key: str) -> int:
        return self._call("scard", key)

    def sinter(self, *keys: str) -> set:
        return self._call("sinter", list(keys))

    def sinterstore(self, destination: str, keys: Sequence[str]) -> int:
        return self._call("sinterstore", destination, list(keys))

    # Sorted sets

    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        return self._call("zadd", key, mapping)

    def zrem(self, key: str, *members: str) -> int:
        return self._call("zrem", key, *members)

    def zcard(self, key: str) -> int:
        return self._call("zcard", key)

    def zscore(self, key: str, member: str) -> Optional[float]:
        return self._call("zscore", key, member)

    def zrange(self, key: str, start: int = 0, end: int = -1) -> List[str]:
        return self._call("zrange", key, start, end)

    def zrangebyscore(self, key: str, min_score: Union[float, str], max_score: Union[float, str]) -> List[str]:
        return self._call("zrangebyscore", key, min_score, max_score)

    def zinterstore(self, destination: str, weighted_keys: Dict[str, float]) -> int:
        return self._call("zinterstore", destination, weighted_keys)

    # Lists

    def rpush(self, key: str, *values: str) -> int:
        return self._call("rpush", key, *values)

    def lrange(self, key: str, start: int = 0, end: int = -1) -> List[str]:
        return self._call("lrange", key, start, end)

    def lrem(self, key: str, count: int, value: str) -> int:
        return self._call("lrem", key, count, value)

    def llen(self, key: str) -> int:
        return self._call("llen", key)

    def lindex(self, key: str, index: int) -> Optional[str]:
        return self._call("lindex", key, index)

    def lset(self, key: str, index: int, value: str) -> bool:
        return self._call("lset", key, index, value)

    # Batches and transactions

    @contextmanager
    def transaction(self) -> Iterator[Pipeline]:
        """
        Yield a MULTI/EXEC pipeline. The pipeline is reset (and its
        connection returned to the pool) however the block exits.
        """
        with self.client.pipeline(transaction=True) as pipe:
            yield pipe

    def apply(self, operations: Sequence[StoreOperation], pipeline: bool = True, atomic: bool = False) -> List[Any]:
        """
        Apply an ordered list of operations.

        Args:
            operations: The operations, in the order they must run.
            pipeline: Send all operations in one round trip. Ignored (always
                pipelined) when `atomic` is set.
            atomic: Wrap the operations in MULTI/EXEC.

        Returns:
            The per-operation results.
        """
        if not operations:
            return []

        LOG.debug(f"Applying {len(operations)} operations (pipeline={pipeline}, atomic={atomic}).")
        with translate_errors(f"Batch of {len(operations)} operations"):
            if atomic:
                with self.transaction() as pipe:
                    for operation in operations:
                        operation.apply_to(pipe)
                    return pipe.execute()
            if not pipeline:
                return [operation.apply_to(self.client) for operation in operations]
            with self.client.pipeline(transaction=False) as pipe:
                for operation in operations:
                    operation.apply_to(pipe)
                return pipe.execute()

    @contextmanager
    def watch(self, key: str) -> Iterator[WatchedTransaction]:
        """
        WATCH `key` and yield a [`WatchedTransaction`][backends.redis.redis_client.WatchedTransaction].

        The underlying pipeline is always reset on exit, which also releases
        the WATCH and returns the connection to the pool.

        Args:
            key: The key guarding the transaction.
        """
        pipe = self.client.pipeline(transaction=True)
        try:
            with translate_errors(f"WATCH {key}"):
                pipe.watch(key)
            yield WatchedTransaction(pipe, key)
        finally:
            pipe.reset()

    # Server

    def info(self) -> Dict[str, Any]:
        return self._call("info")

    def flushdb(self) -> bool:
        return self._call("flushdb")
