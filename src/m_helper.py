#!/usr/bin/python3
'''
Created on Oct 18, 2026

@author:

Shared helpers: exception types, config defaults and value coercion.

'''

import logging
logger = logging.getLogger(__name__)

from datetime import datetime

#=======================================================================

class PgridError(Exception):
    pass


class MissingDependency(PgridError):
    """Exception raised when a required external tool is not available

    Attributes:
        feature -- list of the missing tool names
    """

    def __init__(self, feature=()):
        self.feature = list(feature)
        self.message = "Required dependencies are missing: {}".format(", ".join(self.feature))
        super().__init__(self.message)


class PathTraversal(PgridError, ValueError):
    pass


#=======================================================================
def coerce_value(value, expected_type):
    """
    Attempts to convert value to expected_type.
    Returns the converted value if possible, otherwise raises ValueError.
    """
    if value is None:
        return None

    # Normalize to list
    if not isinstance(expected_type, list):
        expected_type = [expected_type]

    #----------------------------------------
    # check if the type of value matches expected_type
    if type(value) in expected_type:

        # empty strings should be None
        if isinstance(value, str) and value.strip() == "":
            return None

        return value

    #----------------------------------------
    # Try to coerce
    for t in expected_type:
        try:
            if t is bool:
                if isinstance(value, str):
                    low = value.strip().lower()
                    if low in ("1", "true", "yes", "on"):
                        return True
                    if low in ("0", "false", "no", "off", ""):
                        return False
                    continue
                return bool(value)
            elif t is int:
                if isinstance(value, float) and not value.is_integer():
                    continue
                return int(value)
            elif t is float:
                return float(value)
            elif t is str:
                return str(value)
            elif t is datetime:
                if isinstance(value, (int, float)):
                    return datetime.fromtimestamp(value)
                elif isinstance(value, str):
                    return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            continue

    raise ValueError(f"Failed to convert value '{value}' to any of {[t.__name__ for t in expected_type]}")


#=======================================================================
#
def init_object_attributes_enh(self, default_attribs, updated_attribs):
    """
    Create/update default object attributes from a dictionary.  If a key from the
    default dict is in the updated dict, then use the value from the updated
    dict to create the attribute.

    Converts values based on the tuple in default_attribs

    """
    for key in default_attribs :
        if key not in updated_attribs or updated_attribs[key] is None :
            default_val = default_attribs[key][0]
            # copy mutable defaults so instances never share them
            if isinstance(default_val, (list, dict, set)):
                default_val = type(default_val)(default_val)
            self.__setattr__(key, default_val)
            continue

        self.__setattr__(key, updated_attribs[key])
        continue


#=======================================================================
#
class AttribObject():
    """
    Base for objects whose attributes are declared in a `(default, type)`
    dictionary.  Assignments to declared attributes are coerced to the
    declared type.
    """

    attrib_defaults = {}

    def __init__(self, config=None) :

        # combine dictionaries and create object attributes from them
        init_object_attributes_enh(self, self.attrib_defaults, config or {})

    def __setattr__(self, name, value):

        # Look up the expected type from the defaults
        expected_info = self.attrib_defaults.get(name)
        if expected_info:
            _, expected_type = expected_info
            if expected_type:
                value = coerce_value(value, expected_type)

        # Finally set the attribute
        super().__setattr__(name, value)
