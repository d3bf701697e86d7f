##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Hierarchical key construction.

Every key Rohm writes is built here so the layout stays uniform:
`TypeName:[{hashTag}:]segment...` with no trailing separator.
"""
from typing import Any, List, Optional, Type, Union


SEPARATOR = ":"


class Nest:
    """
    Builder for colon-delimited Redis keys rooted at a model type name.

    Segments are appended with [`cat`][keys.Nest.cat] and the result is
    finalized with [`key`][keys.Nest.key], which also resets the builder so
    the same instance can build the next key. Keys can be snapshotted with
    [`next`][keys.Nest.next] and later merged with
    [`combine_keys`][keys.Nest.combine_keys].

    Attributes:
        root (str): The first segment of every key built by this instance.
    """

    def __init__(self, root: str = ""):
        self.root: str = root
        self._segments: Optional[List[str]] = None
        self._keys: Optional[List[str]] = None

    @classmethod
    def for_model(cls, model: Union[Any, Type]) -> "Nest":
        """
        Create a builder rooted at the type name of a model class or instance.

        Args:
            model: A model class or an instance of one.

        Returns:
            A new builder.
        """
        model_class = model if isinstance(model, type) else type(model)
        return cls(model_class.__name__)

    def _prefix(self):
        if self._segments is None:
            self._segments = [self.root] if self.root else []

    def cat(self, segment: Any) -> "Nest":
        """
        Append a segment to the key under construction.

        Args:
            segment: Anything with a string form (ids, values, hash tags).

        Returns:
            This builder, so calls can be chained.
        """
        self._prefix()
        self._segments.append(str(segment))
        return self

    def key(self) -> str:
        """
        Finalize the key under construction and reset the builder.

        Returns:
            The accumulated key.
        """
        self._prefix()
        generated_key = SEPARATOR.join(self._segments)
        self._segments = None
        return generated_key

    def next(self) -> "Nest":
        """
        Snapshot the key under construction into the accumulator and reset.

        Returns:
            This builder.
        """
        if self._keys is None:
            self._keys = []
        self._keys.append(self.key())
        return self

    def keys(self) -> List[str]:
        """Return the snapshotted keys in the order they were taken."""
        return list(self._keys or [])

    def combine_keys(self) -> Optional[str]:
        """
        Join the snapshotted keys into one canonical key.

        The snapshots are sorted first, so the same set of keys always yields
        the same combined key no matter the order they were added in.

        Returns:
            The combined key, or None if nothing was snapshotted.
        """
        if not self._keys:
            return None
        return SEPARATOR.join(sorted(self._keys))

    def fork(self) -> "Nest":
        """
        Create a new builder rooted at the key under construction. This
        finalizes (and resets) the current key.
        """
        return Nest(self.key())

    def __repr__(self) -> str:
        return f"Nest(root={self.root!r})"


def get_hash_tag(property_name: str, value: Any) -> str:
    """
    Build the hash-tag segment for a hash-tagged attribute value.

    Redis Cluster hashes only the text between the first `{` and `}` of a
    key, so every key embedding the same segment lands on the same slot.

    Args:
        property_name: The name of the hash-tagged attribute.
        value: The serialized attribute value.

    Returns:
        The segment `{<property_name>_<value>}`.
    """
    return "{" + f"{property_name}_{value}" + "}"


def is_hash_tag(segment: str) -> bool:
    """Whether `segment` has the form of a hash-tag segment."""
    return len(segment) > 2 and segment.startswith("{") and segment.endswith("}")
