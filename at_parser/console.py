# (c) Copyright 2022 Aaron Kimball
#
# Interactive console: type AT commands, see the device's replies.

import os
import os.path
import readline
import signal
import traceback

import at_parser.io as io
import at_parser.protocol as protocol
import at_parser.term as term
from at_parser.term import MsgLevel

_LOCAL_COMMANDS = {
    'help': 'Show this help. Use AT+HELP? to list the device\'s commands.',
    'quit': 'Leave the console (also: exit, ^D).',
}


class AtConsole(object):
    """
    The interactive command-line the user interacts with directly.

    Each line typed is sent to the device with a CR terminator; reply lines are printed
    until the final OK / ERROR.
    """

    def __init__(self, conn, config, console_printer, device=None):
        self._conn = conn
        self._config = config
        self._console_printer = console_printer
        self._print_q = console_printer.print_q
        self._device = device

        signal.signal(signal.SIGINT, signal.default_int_handler)

        self._history_filename = None
        self._load_history(config.get("dbg.historyfile"))

    def close(self):
        if self._device:
            self._device.shutdown()

        if self._conn:
            self._conn.close()

        self._console_printer.shutdown()

        self._device = None
        self._conn = None

    def _load_history(self, filename):
        if not filename:
            return

        filename = os.path.normpath(filename)
        self._history_filename = filename
        if os.path.exists(filename):
            readline.read_history_file(filename)
            self._config.verboseprint(f"Loaded history from file: {filename}")
        else:
            self._config.verboseprint(f"Creating new history file: {filename}")
            open(filename, 'w').close()

    def _append_history(self):
        if self._history_filename is not None:
            try:
                readline.append_history_file(1, self._history_filename)
            except OSError as e:
                term.write(f'Error writing to history file: {e}. Disabling history file recording.',
                    MsgLevel.WARN)
                self._history_filename = None

    def send_line(self, line):
        """
        Send one command line and return the list of reply lines, final OK/ERROR included.

        @throws NoConnectionException if there is no open connection.
        @throws DisconnectedException if the final reply does not arrive in time.
        """
        if self._conn is None or not self._conn.is_open():
            raise io.NoConnectionException("Not connected to a device")

        self._config.verboseprint("--> ", line)
        self._conn.write((line + protocol.AT_CMD_END).encode('ascii'))

        replies = []
        partial = b''
        max_attempts = max(self._config.get("dbg.poll.retry"), 1)
        attempts = 0
        while attempts < max_attempts:
            partial += self._conn.readline()
            if not partial.endswith(b'\n'):
                attempts += 1  # Timed out mid-line (or with nothing at all).
                continue

            text = partial.decode('ascii', errors='replace').strip()
            partial = b''
            if len(text) == 0:
                continue

            self._config.verboseprint("<-- ", text)
            replies.append(text)
            if protocol.is_final_reply(text):
                return replies

        raise io.DisconnectedException("Timeout waiting for response from device.")

    def _print_replies(self, replies):
        for reply in replies:
            self._print_q.put((reply, MsgLevel.for_reply(reply)))
        self._console_printer.join_q()

    def _print_help(self):
        for (cmd, text) in _LOCAL_COMMANDS.items():
            print(f'{MsgLevel.colorize(cmd, MsgLevel.EMPHASIS)} -- {text}')
        print('Anything else is sent to the device as an AT command line.')

    def loop_input_body(self):
        """
            Primary function to call inside a loop; executes one flow of Read-eval-print.
            Returns True if we want to quit, False to continue.
        """
        try:
            cmdline = term.readline_input()
        except KeyboardInterrupt:
            print('') # Terminate line after visible '^C' in input.
            return False
        except EOFError:
            # Received '^D'; time to quit
            print('')
            return True

        cmdline = cmdline.strip()
        if len(cmdline) == 0:
            return False

        self._append_history()

        if cmdline in ('quit', 'exit', '\\q'):
            return True
        elif cmdline == 'help':
            self._print_help()
            return False

        try:
            self._print_replies(self.send_line(cmdline))
        except io.ConnectionIOError as e:
            term.write(f"Error sending '{cmdline}': {e}", MsgLevel.ERR)
        except Exception as e:
            term.write(f"Error sending '{cmdline}': {e}", MsgLevel.ERR)
            if self._config.get("dbg.verbose"):
                traceback.print_tb(e.__traceback__)
            else:
                print("For stack trace info, set 'dbg.verbose': True in the config file")

        return False

    def loop(self):
        """
            The actual main loop.

            Returns the exit status for the program. (0 for success)
        """
        self._console_printer.set_readline_enabled(True)
        quit = False
        while not quit:
            quit = self.loop_input_body()

        return 0
