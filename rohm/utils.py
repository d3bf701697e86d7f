##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Module for project-wide utility functions.
"""
import logging
from copy import deepcopy
from types import SimpleNamespace
from typing import Any, Dict

import yaml


LOG = logging.getLogger(__name__)


def load_yaml(filepath: str) -> Dict:
    """
    Safely read a YAML file and return its contents.

    Args:
        filepath: The file path to the YAML file to be read.

    Returns:
        A dict representing the contents of the YAML file.
    """
    with open(filepath, "r") as _file:
        return yaml.safe_load(_file)


def get_yaml_var(entry: Dict[str, Any], var: str, default: Any) -> Any:
    """
    Retrieve the value associated with a specified key from a YAML dictionary
    or namespace.

    Args:
        entry: A dictionary (or namespace) representing the contents of a YAML file.
        var: The key or attribute name to retrieve from the entry.
        default: The default value to return if the key or attribute is not found.

    Returns:
        The value associated with `var` in the entry, or `default` if not found.
    """
    try:
        return entry[var]
    except (TypeError, KeyError):
        try:
            return getattr(entry, var)
        except AttributeError:
            return default


def nested_dict_to_namespaces(dic: Dict) -> SimpleNamespace:
    """
    Convert a nested dictionary into a nested SimpleNamespace structure.

    Args:
        dic: The nested dictionary to be converted.

    Returns:
        A SimpleNamespace object representing the nested structure of the input dictionary.

    Raises:
        TypeError: If the input is not a dictionary.
    """

    def recurse(dic):
        if not isinstance(dic, dict):
            return dic
        for key, val in list(dic.items()):
            dic[key] = recurse(val)
        return SimpleNamespace(**dic)

    if not isinstance(dic, dict):
        raise TypeError(f"{dic} is not a dict")

    new_dic = deepcopy(dic)
    return recurse(new_dic)


def dict_deep_merge(dict_a: Dict, dict_b: Dict):
    """
    Merge `dict_b` into `dict_a` in place. Nested dicts are merged
    recursively and values from `dict_b` win on conflicts.

    Args:
        dict_a: The dictionary that receives the values.
        dict_b: The dictionary whose values are merged in.
    """
    for key, val in dict_b.items():
        if isinstance(val, dict) and isinstance(dict_a.get(key), dict):
            dict_deep_merge(dict_a[key], val)
        else:
            dict_a[key] = val


def is_null_or_empty(value: Any) -> bool:
    """
    Check whether a value is absent for indexing purposes.

    Args:
        value: Any value.

    Returns:
        True if `value` is None or its string form is blank.
    """
    if value is None:
        return True
    return len(str(value).strip()) == 0
