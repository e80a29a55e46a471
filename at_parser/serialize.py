# (c) Copyright 2022 Aaron Kimball
#
# Reading and writing configuration files.
#
# A config file holds python literals:
#
#   formatversion = 1
#   config = {
#     'at.separator': ',',
#     ...
#   }

import ast

from at_parser.term import MsgLevel

CONF_FMT_VERSION = 1


def load_config_file(print_q, filename, map_name='config', defaults=None):
    """
        Read a configuration file map.

        The file is parsed as a sequence of `name = <literal>` assignments; only python
        literals are accepted (nothing in it is executed). Afterward:
        - `formatversion` specifies this serialization version
        - `{map_name}` is a dict of k-v pairs.

        If `defaults` is a map, then its values populate anything omitted from the loaded map.
        Problems with the file are reported on print_q and the defaults are returned.
    """
    if defaults is None:
        defaults = {}
    new_conf = defaults.copy()

    with open(filename, "r") as f:
        conf_text = f.read()

    try:
        assignments = _parse_assignments(conf_text)
    except (SyntaxError, ValueError) as e:
        print_q.put((f"Warning: error parsing config file '{filename}': {e}", MsgLevel.WARN))
        return new_conf

    fmtver = assignments.get('formatversion')
    if not isinstance(fmtver, int) or fmtver > CONF_FMT_VERSION:
        print_q.put((f"Error: Cannot read config file '{filename}' with version {fmtver}",
                     MsgLevel.ERR))
        return new_conf  # Disregard the unsupported configuration data.

    loaded_conf = assignments.get(map_name)
    if not isinstance(loaded_conf, dict):
        print_q.put((f"Error in format for config file '{filename}'", MsgLevel.ERR))
        return new_conf

    # Merge loaded data on top of our default config.
    for (k, v) in loaded_conf.items():
        new_conf[k] = v

    return new_conf


def _parse_assignments(conf_text):
    """
    Return a dict of the top-level `name = literal` assignments in conf_text.
    """
    out = {}
    tree = ast.parse(conf_text, mode='exec')
    for stmt in tree.body:
        if not isinstance(stmt, ast.Assign) or len(stmt.targets) != 1 or \
                not isinstance(stmt.targets[0], ast.Name):
            raise ValueError(f'line {stmt.lineno}: expected `name = value`')
        out[stmt.targets[0].id] = ast.literal_eval(stmt.value)
    return out


def __persist_conf_var(f, k, v):
    """
        Persist k=v in serialized form to the file handle 'f'.

        Can be called with k=None to serialize a nested value in a complex type.
    """

    if k is not None:
        f.write(f'  {repr(k)}: ')

    if v is None or type(v) == str or type(v) == int or type(v) == float or type(v) == bool:
        f.write(repr(v))
    elif type(v) == bytes or type(v) == bytearray:
        f.write(repr(bytes(v)))
    elif type(v) == list:
        f.write('[')
        for elem in v:
            __persist_conf_var(f, None, elem)
            f.write(", ")
        f.write(']')
    elif type(v) == dict:
        f.write("{\n")
        for (dirK, dirV) in v.items():
            f.write('    ')
            __persist_conf_var(f, None, dirK) # keys in a dir can be any type, not just str
            f.write(": ")
            __persist_conf_var(f, None, dirV)
            f.write(",\n")
        f.write("  }")
    else:
        raise TypeError(f"Cannot serialize config value of type {type(v)}")

    if k is not None:
        f.write(",\n")


def persist_config_file(filename, map_name, data):
    """
        Write configuration information out to a file.
    """

    with open(filename, "w") as f:
        f.write(f"formatversion = {CONF_FMT_VERSION}\n")
        f.write(f"{map_name} = {{\n\n")
        for (k, v) in data.items():
            __persist_conf_var(f, k, v)
        f.write("\n}\n")
