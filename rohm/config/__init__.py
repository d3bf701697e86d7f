##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Used to store the application configuration.

Modules:
    config_filepaths.py: Constants for the locations of configuration files.
    configfile.py: Locates, loads and applies defaults to `app.yaml`.
    store_config.py: Builds connection settings for the Redis store.
"""
from copy import copy
from types import SimpleNamespace
from typing import Dict, List, Optional

from rohm.utils import nested_dict_to_namespaces


class Config:  # pylint: disable=R0903
    """
    The Config class, meant to store all Rohm config settings in one place.

    Attributes:
        store (Optional[SimpleNamespace]): Connection settings for the Redis store.
        query (Optional[SimpleNamespace]): Settings for the query evaluator.
        logging (Optional[SimpleNamespace]): Log level and coloring.
    """

    sections: List[str] = ["store", "query", "logging"]

    def __init__(self, app_dict: Dict):
        """
        Initializes the Config instance with configuration data from a dictionary.

        Args:
            app_dict: A dictionary containing configuration data for the application.
                Each known section is converted into a `SimpleNamespace`.
        """
        self.store: Optional[SimpleNamespace] = None
        self.query: Optional[SimpleNamespace] = None
        self.logging: Optional[SimpleNamespace] = None
        self.load_app_into_namespaces(app_dict)

    def __copy__(self) -> "Config":
        """
        Creates a shallow copy of the Config instance.

        Returns:
            A new Config instance with copied section namespaces.
        """
        cls = self.__class__
        result = cls.__new__(cls)
        result.__dict__.update({section: copy(self.__dict__[section]) for section in self.sections})
        return result

    def __str__(self) -> str:
        formatted_str = "config:"
        for name in self.sections:
            attr = getattr(self, name)
            if attr is not None:
                items = (f"    {k}: {v!r}" for k, v in attr.__dict__.items() if k != "password")
                joined_items = "\n".join(items)
                formatted_str += f"\n  {name}:\n{joined_items}"
            else:
                formatted_str += f"\n  {name}:\n    None"
        return formatted_str

    def load_app_into_namespaces(self, app_dict: Dict):
        """
        Converts the provided application dictionary into namespaces and assigns them
        to the Config instance's attributes.

        Args:
            app_dict: A dictionary containing configuration data for the application.
        """
        for field in self.sections:
            try:
                setattr(self, field, nested_dict_to_namespaces(app_dict[field]))
            except KeyError:
                # The sections are optional
                pass
