# (c) Copyright 2022 Aaron Kimball
#
# User-facing configuration for the AT tools.

import os
import os.path

import at_parser.protocol as protocol
import at_parser.serialize as serialize
import at_parser.term as term

_LOCAL_CONF_FILENAME = os.path.expanduser("~/.at_parser.conf")
_DEFAULT_HISTORY_FILENAME = os.path.expanduser("~/.at_parser_history")

_DEFAULT_BAUD_RATE = 9600
_DEFAULT_SERIAL_TIMEOUT = 0.1  # seconds
_DEFAULT_MAX_POLL_RETRIES = 20
_DEFAULT_POLL_TIMEOUT = 100  # milliseconds
_DEFAULT_MEM_SIZE = 256  # bytes of emulated device memory

_conf_keys = [
    "at.header",
    "at.header_separator",
    "at.rx_buffer_size",
    "at.separator",
    "dbg.colors",
    "dbg.conf.formatversion",
    "dbg.historyfile",
    "dbg.poll.retry",    # Attempts to wait for each reply line.
    "dbg.poll.timeout",  # How long is each attempt, in ms?
    "dbg.verbose",
    "dev.mem_size",
    "serial.baud",
    "serial.timeout",
]


def get_conf_keys():
    return list(_conf_keys)


class Config(object):
    """
    Configuration key-value map.

    Loads from a dotfile in the user's $HOME unless given a `force_config` map, in which
    case that is used and changes are not written back to the file.
    """

    def __init__(self, print_q, force_config=None, filename=None):
        """
        @param print_q the queue that connects us to stdout/ConsolePrinter
        @param force_config if not None, provides config inputs and suppresses loading from
            (and writing to) the user config file.
        @param filename overrides the location of the user config file.
        """
        self._print_q = print_q
        self._filename = filename or _LOCAL_CONF_FILENAME
        self._do_persist_config_changes = (force_config is None)

        defaults = self._set_conf_defaults()
        if force_config is not None:
            for (key, val) in force_config.items():
                if key not in _conf_keys:
                    raise KeyError("Not a valid conf key: %s" % key)
                defaults[key] = val
            new_conf = defaults
        elif os.path.exists(self._filename):
            new_conf = serialize.load_config_file(self._print_q, self._filename, 'config',
                                                  defaults)
        else:
            new_conf = defaults

        self._config = new_conf
        self._config_verbose_print()
        self._config_colors()

        if force_config is None:
            self.verboseprint("Loaded config from file: ", self._filename)
        else:
            self.verboseprint("Used programmatic configuration")
        self.verboseprint("Loaded configuration: ", self._config)

    def _set_conf_defaults(self, conf_map=None):
        """
        Populate conf_map with all our config keys, and initialize any default values.
        """
        if conf_map is None:
            conf_map = {}

        for k in _conf_keys:
            conf_map[k] = None

        conf_map["at.header"] = protocol.AT_HEADER
        conf_map["at.header_separator"] = protocol.AT_HEADER_SEPARATOR
        conf_map["at.rx_buffer_size"] = protocol.AT_RX_BUFFER_SIZE
        conf_map["at.separator"] = protocol.AT_PARAM_SEPARATOR
        conf_map["dbg.colors"] = True
        conf_map["dbg.conf.formatversion"] = serialize.CONF_FMT_VERSION
        conf_map["dbg.historyfile"] = _DEFAULT_HISTORY_FILENAME
        conf_map["dbg.poll.retry"] = _DEFAULT_MAX_POLL_RETRIES
        conf_map["dbg.poll.timeout"] = _DEFAULT_POLL_TIMEOUT
        conf_map["dbg.verbose"] = False
        conf_map["dev.mem_size"] = _DEFAULT_MEM_SIZE
        conf_map["serial.baud"] = _DEFAULT_BAUD_RATE
        conf_map["serial.timeout"] = _DEFAULT_SERIAL_TIMEOUT

        return conf_map

    def _persist_config(self):
        """
        Write the current config out to a file to reload the next time.
        """
        if not self._do_persist_config_changes:
            return

        self._config["dbg.conf.formatversion"] = serialize.CONF_FMT_VERSION
        serialize.persist_config_file(self._filename, 'config', self._config)

    def _config_verbose_print(self):
        self.verboseprint = term.make_verbose_print_fn(self._print_q, self.get("dbg.verbose"))

    def _config_colors(self):
        term.set_use_colors(self.get("dbg.colors"))

    def get(self, key):
        """
        Return the value for a config key; raises KeyError for unknown keys.
        """
        if key not in _conf_keys:
            raise KeyError("Not a valid conf key: %s" % key)
        return self._config.get(key)

    def set(self, key, val):
        """
        Set a key-value pair in the configuration map, process any triggers associated
        with that key, and persist the change.
        """
        if key not in _conf_keys:
            raise KeyError("Not a valid conf key: %s" % key)

        self._config[key] = val

        if key == "dbg.verbose":
            self._config_verbose_print()
        if key == "dbg.colors":
            self._config_colors()

        self._persist_config()

    def items(self):
        return self._config.items()
