##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
This module provides functionality for locating and loading the application
configuration file and filling in default settings.
"""
import logging
import os
from typing import Dict, Optional

from rohm.config import Config
from rohm.config.config_filepaths import APP_FILENAME, ROHM_HOME
from rohm.utils import dict_deep_merge, load_yaml


LOG: logging.Logger = logging.getLogger(__name__)


def load_config(filepath: str) -> Optional[Dict]:
    """
    Reads a Rohm YAML configuration file and returns its contents as a dictionary.

    Args:
        filepath: The path to the YAML configuration file.

    Returns:
        A dictionary containing the contents of the YAML file or None if file doesn't exist.
    """
    if not os.path.isfile(filepath):
        LOG.info(f"No app config file at {filepath}")
        return None
    LOG.info(f"Reading app config from file {filepath}")
    return load_yaml(filepath) or {}


def find_config_file(path: str = None) -> Optional[str]:
    """
    Locate the Rohm application configuration file (`app.yaml`).

    Without a `path` the search order is:
      1. `app.yaml` in the current working directory.
      2. `app.yaml` in the `ROHM_HOME` directory.

    If a `path` is explicitly provided, only that directory is checked.

    Args:
        path: A specific directory to look for `app.yaml`.

    Returns:
        The full path to the `app.yaml` file if found, otherwise `None`.
    """
    if path is None:
        local_app = os.path.join(os.getcwd(), APP_FILENAME)
        if os.path.isfile(local_app):
            return local_app

        path_app = os.path.join(ROHM_HOME, APP_FILENAME)
        if os.path.isfile(path_app):
            return path_app

        return None

    app_path = os.path.join(path, APP_FILENAME)
    if os.path.exists(app_path):
        return app_path

    return None


def get_default_config() -> Dict:
    """
    Creates the default configuration used when no `app.yaml` exists.

    Returns:
        A configuration dictionary with every section filled in.
    """
    return {
        "store": {
            "name": "redis",
            "server": "localhost",
            "port": 6379,
            "db_num": 0,
            "username": None,
            "password": None,
            "cert_reqs": "required",
            "max_connections": None,
        },
        "query": {
            "cleanup_destination_keys": True,
            "destination_key_ttl": 60,
        },
        "logging": {
            "level": "INFO",
            "colors": True,
        },
    }


def get_config(path: Optional[str] = None) -> Dict:
    """
    Loads a Rohm configuration file and merges it over the defaults.

    Args:
        path: The directory path to search for the configuration file.
            If `None`, default search paths are used.

    Returns:
        A dictionary containing all the configuration data.
    """
    config = get_default_config()

    filepath = find_config_file(path)
    if filepath is None:
        LOG.debug("No configuration file found; using defaults.")
        return config

    app_config = load_config(filepath)
    if app_config:
        dict_deep_merge(config, app_config)
    return config


def initialize_config(path: Optional[str] = None) -> Config:
    """
    Build a [`Config`][config.Config] object from the located configuration file.

    Args:
        path: The directory path to search for the configuration file.

    Returns:
        The loaded configuration.
    """
    return Config(get_config(path))
