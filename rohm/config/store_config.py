##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
This module builds the connection settings for the Redis store from the
`store` section of the application configuration (`app.yaml`).
"""
import logging
import os
from typing import Dict
from urllib.parse import quote

from rohm.config import Config
from rohm.config.config_filepaths import ROHM_HOME


LOG = logging.getLogger(__name__)

STORES = ["redis", "rediss"]


def get_store_password(password_file: str) -> str:
    """
    Retrieves the store password from a specified file or returns the provided password value.

    The password file is looked up in the Rohm home directory (`~/.rohm`) first
    and then at `password_file` itself. If neither exists, the value of
    `password_file` is treated as the password.

    Args:
        password_file: The file path or value for the password.

    Returns:
        The store password, either read from the file or the provided value.
    """
    rohm_pass = os.path.join(ROHM_HOME, password_file)
    password_file = os.path.expanduser(password_file)

    password_filepath = ""
    if os.path.exists(rohm_pass):
        password_filepath = rohm_pass
    elif os.path.exists(password_file):
        password_filepath = password_file

    if not password_filepath:
        # The password was given instead of the filepath.
        LOG.debug("Password resolution: using direct value.")
        return password_file.strip()

    LOG.debug("Password resolution: using file.")
    with open(password_filepath, "r") as f:  # pylint: disable=C0103
        return f.readline().strip()


def get_connection_string(config: Config, include_password: bool = True) -> str:
    """
    Constructs a `redis://` or `rediss://` connection URL from the configuration.

    If a URL is explicitly defined in the configuration (`store.url`), it is
    returned as the connection string.

    Args:
        config: The loaded application configuration.
        include_password: Whether to include the password in the connection URL.
            If False, the password will be masked.

    Returns:
        The connection URL for the store.

    Raises:
        ValueError: If the configured store name is not supported.
    """
    store = config.store
    url = getattr(store, "url", None)
    if url:
        return url

    name = (getattr(store, "name", None) or "redis").lower()
    if name not in STORES:
        raise ValueError(f"'{name}' is not a supported store")

    server = getattr(store, "server", None) or "localhost"
    port = getattr(store, "port", None) or 6379
    db_num = getattr(store, "db_num", None) or 0
    username = getattr(store, "username", None) or ""

    spass = ""
    password_file = getattr(store, "password", None)
    if password_file:
        password = quote(get_store_password(password_file), safe="") if include_password else "******"
        spass = f"{username}:{password}@"
    else:
        LOG.debug("Store: no Redis password configured.")

    LOG.debug(f"Store: Redis server address {'configured' if server else 'not found in config'}.")
    return f"{name}://{spass}{server}:{port}/{db_num}"


def get_client_kwargs(config: Config) -> Dict:
    """
    Builds the keyword arguments for `redis.Redis.from_url`.

    Args:
        config: The loaded application configuration.

    Returns:
        A dictionary with the url and the connection options.
    """
    store = config.store
    kwargs = {"url": get_connection_string(config), "decode_responses": True}
    if kwargs["url"].startswith("rediss"):
        kwargs["ssl_cert_reqs"] = getattr(store, "cert_reqs", None) or "required"
    max_connections = getattr(store, "max_connections", None)
    if max_connections:
        kwargs["max_connections"] = max_connections
    return kwargs
