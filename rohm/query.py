##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Predicates used to query indexed models.
"""
from dataclasses import dataclass
from typing import Any, Optional

from rohm.common.enums import Condition


@dataclass(frozen=True)
class Constraint:
    """
    One predicate of a multi-predicate query. Predicates of a query are
    combined with AND.

    Attributes:
        property_name: The indexed property of the queried model.
        condition: The comparison to apply.
        value: The compared value. For references this is the target model or
            its id; for drill-down constraints it is the child property's value.
        child_property: For drill-down constraints, the indexed property of the
            referenced model that `value` is compared against.
    """

    property_name: str
    condition: Condition = Condition.EQUALS
    value: Any = None
    child_property: Optional[str] = None

    @classmethod
    def on_reference(
        cls, property_name: str, child_property: str, child_value: Any, condition: Condition = Condition.EQUALS
    ) -> "Constraint":
        """
        Build a drill-down constraint matching models whose referenced model
        has `child_property` satisfying `condition` against `child_value`.

        Args:
            property_name: The indexed reference property.
            child_property: The indexed property of the referenced model.
            child_value: The compared value.
            condition: The comparison to apply.

        Returns:
            The constraint.
        """
        return cls(property_name, condition, child_value, child_property)

    def is_drilldown(self) -> bool:
        """Whether this constraint targets a property of a referenced model."""
        return self.child_property is not None

    def is_range(self) -> bool:
        """Whether this constraint needs a range index."""
        return self.condition.is_range
