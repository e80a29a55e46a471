# (c) Copyright 2022 Aaron Kimball
#
# Console output. Everything shown to the user is a (text, MsgLevel) pair; other threads
# queue them on ConsolePrinter.print_q and the printer thread writes them out in order,
# keeping the readline prompt intact.

import queue
import readline
import threading

import at_parser.protocol as protocol

PROMPT = "\r(at) "

_VT100_RESET = '\033[0m'
_colors_on = True


def set_use_colors(do_use_colors):
    global _colors_on
    _colors_on = bool(do_use_colors)


class MsgLevel(object):
    """
    Kinds of console message. Each maps to the VT100 color it is displayed in.
    """
    INFO        = 0         # Standard message
    DEVICE      = 1         # Intermediate reply line from the device
    WARN        = 2         # Warnings
    ERR         = 3         # Errors (incl. ERROR replies)
    DEBUG       = 4         # verboseprint() info
    SUCCESS     = 5         # OK replies
    EMPHASIS    = 6         # Bold; used for headings in help text

    _vt100 = {
        INFO: _VT100_RESET,
        DEVICE: '\033[96m',
        WARN: '\033[93m',
        ERR: '\033[91m',
        DEBUG: '\033[90m',
        SUCCESS: '\033[92m',
        EMPHASIS: '\033[1m',
    }

    @staticmethod
    def colorize(text, msg_level):
        """
        Wrap text in the color for msg_level, unless colors are turned off.
        """
        if not _colors_on or msg_level == MsgLevel.INFO:
            return text
        return f'{MsgLevel._vt100.get(msg_level, _VT100_RESET)}{text}{_VT100_RESET}'

    @staticmethod
    def for_reply(line):
        """
        Return the level used to display a reply line received from a device.
        """
        if line == protocol.AT_REPLY_OK:
            return MsgLevel.SUCCESS
        elif line.startswith(protocol.AT_REPLY_ERROR):
            return MsgLevel.ERR
        return MsgLevel.DEVICE


def write(text, msg_level=MsgLevel.INFO):
    """
    Print directly from the main thread.
    """
    print(MsgLevel.colorize(text, msg_level))


class ConsolePrinter(object):
    """
    Drains print_q on its own thread.

    While the main thread waits in readline_input(), a printed message first blanks the
    prompt line and then redraws the prompt with whatever had been typed so far.
    """

    POLL_INTERVAL = 0.25

    def __init__(self):
        self.print_q = queue.Queue(maxsize=16)
        self._alive = True
        self._redraw_prompt = False
        self._thread = threading.Thread(target=self._drain, name='Console print thread')

    def start(self):
        self._thread.start()

    def shutdown(self):
        self._alive = False
        self._thread.join()

    def set_readline_enabled(self, rl_enabled):
        self._redraw_prompt = rl_enabled

    def join_q(self):
        """
        Block until every queued message has been emitted.
        """
        self.print_q.join()

    def _drain(self):
        while self._alive:
            try:
                (text, msg_level) = self.print_q.get(timeout=self.POLL_INTERVAL)
            except queue.Empty:
                continue

            try:
                self.emit(text, msg_level)
            finally:
                self.print_q.task_done()

    def emit(self, text, msg_level):
        typed = readline.get_line_buffer() if self._prompt_showing() else None
        if typed is None:
            print(MsgLevel.colorize(text, msg_level), flush=True)
            return

        blank = ' ' * (len(PROMPT) + len(typed))
        print(f'\r{blank}\r{MsgLevel.colorize(text, msg_level)}', flush=True)
        print(f'{PROMPT}{typed}', end='', flush=True)

    def _prompt_showing(self):
        return self._redraw_prompt and _prompt_active.is_set()


class NullPrinter(ConsolePrinter):
    """
    ConsolePrinter that discards everything; used by tests.
    """

    def emit(self, text, msg_level):
        pass


# Set only while input() is blocked on the prompt.
_prompt_active = threading.Event()

def readline_input():
    """
    Show the prompt and return the line typed. Use this instead of input() so that the
    printer thread knows to redraw the prompt.
    """
    _prompt_active.set()
    try:
        return input(PROMPT)
    finally:
        _prompt_active.clear()


def make_verbose_print_fn(print_q, enabled):
    """
    Return a verboseprint(*args) function bound to print_q, or a no-op if not `enabled`.

    Arguments are only stringified and concatenated when verbose printing is on.
    """
    if not enabled:
        return _silent

    def _verbose_print(*args):
        msg = ''.join([a if isinstance(a, str) else repr(a) for a in args])
        print_q.put((msg, MsgLevel.DEBUG))

    return _verbose_print


def _silent(*args):
    pass
