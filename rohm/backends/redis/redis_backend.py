##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Redis backend for Rohm.

This module provides the `RedisBackend` class, the entry point applications
use. It owns the Redis connection and wires together the model store and the
query evaluator on top of one schema registry.
"""

import logging
from typing import Any, List, Optional, Sequence, Set, Type, Union

from redis import Redis

from rohm.backends.redis.redis_client import StoreClient
from rohm.backends.redis.redis_model_store import RedisModelStore
from rohm.backends.redis.redis_query import RedisQueryEvaluator
from rohm.backends.store_base import StoreBase, T
from rohm.config import Config
from rohm.log_formatter import setup_logging
from rohm.query import Constraint
from rohm.schema.registry import DEFAULT_REGISTRY, SchemaRegistry
from rohm.utils import get_yaml_var


LOG = logging.getLogger(__name__)


class RedisBackend(StoreBase[T]):
    """
    A Redis-based store of Rohm models with secondary-index queries.

    Attributes:
        client (Redis): The Redis client used for database operations.
        store_client (StoreClient): The error-translating wrapper around `client`.
        registry (SchemaRegistry): The schema cache.
        store (RedisModelStore): Saves, loads and deletes models.
        query (RedisQueryEvaluator): Answers queries.

    Methods:
        from_config (classmethod):
            Build a backend from the application configuration.

        save / transacted_save:
            Save a model and maintain its indexes.

        get / get_all:
            Load models.

        delete:
            Delete a model.

        find / find_ids / find_by:
            Query models through their indexes.

        get_version:
            Query Redis for the current version.

        flush_database:
            Remove every entry in the Redis database.
    """

    def __init__(
        self,
        client: Redis,
        registry: SchemaRegistry = None,
        cleanup_destination_keys: bool = True,
        destination_key_ttl: int = 60,
    ):
        """
        Initialize the backend on an existing client.

        Args:
            client: A Redis client created with `decode_responses=True`.
            registry: The schema registry; the process-wide one by default.
            cleanup_destination_keys: Delete temporary query keys at the end of
                each query, rather than expiring them.
            destination_key_ttl: The TTL of temporary query keys when they are
                not deleted.
        """
        self.client: Redis = client
        self.store_client: StoreClient = StoreClient(client)
        self.registry: SchemaRegistry = registry or DEFAULT_REGISTRY
        self.store: RedisModelStore = RedisModelStore(self.store_client, self.registry)
        self.query: RedisQueryEvaluator = RedisQueryEvaluator(
            self.store_client,
            self.store,
            self.registry,
            cleanup_destination_keys=cleanup_destination_keys,
            destination_key_ttl=destination_key_ttl,
        )

    @classmethod
    def from_config(cls, config: Config = None, registry: SchemaRegistry = None) -> "RedisBackend":
        """
        Build a backend from the application configuration.

        The `logging` section configures the `rohm` logger, the `store`
        section the connection and the `query` section the handling of
        temporary query keys.

        Args:
            config: The configuration; loaded from `app.yaml` (or the
                defaults) when not given.
            registry: The schema registry; the process-wide one by default.

        Returns:
            The backend.
        """
        from rohm.config.configfile import initialize_config  # pylint: disable=import-outside-toplevel
        from rohm.config.store_config import get_client_kwargs  # pylint: disable=import-outside-toplevel

        if config is None:
            config = initialize_config()

        setup_logging(
            logger=logging.getLogger("rohm"),
            log_level=get_yaml_var(config.logging, "level", "INFO"),
            colors=get_yaml_var(config.logging, "colors", True),
        )

        client = Redis.from_url(**get_client_kwargs(config))
        LOG.info(f"Connected Rohm to the {config.store.name} store.")
        return cls(
            client,
            registry=registry,
            cleanup_destination_keys=get_yaml_var(config.query, "cleanup_destination_keys", True),
            destination_key_ttl=get_yaml_var(config.query, "destination_key_ttl", 60),
        )

    def save(self, model: T, save_children: bool = False, transactional: bool = False, use_pipeline: bool = True) -> T:
        return self.store.save(model, save_children, transactional, use_pipeline)

    def transacted_save(self, model: T, save_children: bool = False) -> T:
        return self.store.transacted_save(model, save_children)

    def get(self, model_class: Type[T], model_id: Any) -> Optional[T]:
        return self.store.get(model_class, model_id)

    def get_all(self, model_class: Type[T]) -> List[T]:
        return self.store.get_all(model_class)

    def delete(
        self, model_class: Type[T], model_id: Any, delete_indexes: bool = True, delete_children: bool = False
    ) -> bool:
        return self.store.delete(model_class, model_id, delete_indexes, delete_children)

    def find(
        self,
        model_class: Type[T],
        constraints: Sequence[Constraint],
        return_ids_only: bool = False,
        hash_tag: str = None,
    ) -> Union[Set[int], List[T]]:
        return self.query.find(model_class, constraints, return_ids_only, hash_tag)

    def find_ids(self, model_class: Type[T], constraints: Sequence[Constraint], hash_tag: str = None) -> Set[int]:
        """Find the ids of the models satisfying every constraint."""
        return self.query.find(model_class, constraints, return_ids_only=True, hash_tag=hash_tag)

    def find_by(
        self, model_class: Type[T], property_name: str, value: Any, return_ids_only: bool = False, hash_tag: str = None
    ) -> Union[Set[int], List[T]]:
        return self.query.find_by(model_class, property_name, value, return_ids_only, hash_tag)

    def get_version(self) -> str:
        """
        Query the Redis backend for the current version.

        Returns:
            A string representing the current version of Redis.
        """
        client_info = self.store_client.info()
        return client_info.get("redis_version", "N/A")

    def flush_database(self):
        """
        Remove everything stored in Redis.
        """
        self.store_client.flushdb()
