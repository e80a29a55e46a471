# (c) Copyright 2022 Aaron Kimball
#
# Binding of AT command literals to handler methods, and dispatch of received lines to them.

import inspect

from sortedcontainers import SortedDict, SortedList

import at_parser.protocol as protocol
from at_parser.parser import ParserContext, ParserError, ParserMode, ParserStatus
from at_parser.term import MsgLevel


class CommandError(Exception):
    """
    Raised by a command handler when a well-formed command cannot be carried out.
    The dispatcher answers with a plain ERROR reply.
    """
    pass


class AtCommand(object):
    """
    meta-decorator that tags a method as the handler for one or more AT command literals.
    The first non-empty line of the method's docstring becomes its help text.

        @AtCommand(keywords=['+ECHO'], params=True)
        def _echo(self, ctx): ...

    The handler is called as `fn(host, ctx)` with a ParserContext whose cursor sits on the
    first parameter. It returns a list of reply lines (without the final OK), or None.

    @param keywords list of command literals, each matched right after the header.
    @param params True if the command takes parameters; a parameterless command must end
        the line.
    """

    _cmd_map = {}                   # Lookup from all keywords to AtCommand instances
    _cmd_index = SortedDict()       # AtCommand instances keyed by primary keyword only.
    # All keywords, longest first so '+MEMR' is tried before '+MEM'.
    _cmd_list = SortedList(key=lambda kw: (-len(kw), kw))

    def __init__(self, keywords, params=False, display_help=True):
        if not isinstance(keywords, list):
            raise Exception("Expected syntax @AtCommand(keywords=[...])")

        if len(keywords) == 0:
            raise Exception("Must supply one or more keywords to @AtCommand.")

        self.keywords = keywords
        self.params = params
        self.display_help = display_help
        self.command_func = None    # The function to call (memoized in __call__)
        self.short_help = ''

        for kw in keywords:
            if kw in AtCommand._cmd_map:
                raise Exception(f"Keyword '{kw}' used multiple times")
            AtCommand._cmd_map[kw] = self
            AtCommand._cmd_list.add(kw)

        AtCommand._cmd_index[keywords[0]] = self

    def invoke(self, host, ctx):
        return self.command_func(host, ctx)

    def __call__(self, fn):
        self.command_func = fn

        docstring = inspect.cleandoc(fn.__doc__ or '')
        first_real_line = ''
        for line in docstring.split("\n"):
            if len(line.strip()) > 0:
                first_real_line = line.strip()
                break

        self.short_help = f"{', '.join(self.keywords)} -- {first_real_line}"
        return fn

    @classmethod
    def getCommandMap(cls):
        """
        Return full mapping from keywords to AtCommand instances.
        """
        return cls._cmd_map

    @classmethod
    def getCommandIndex(cls):
        """
        Return sorted mapping from primary keyword to AtCommand instances.
        """
        return cls._cmd_index

    @classmethod
    def getCommandList(cls):
        """
        Return all keywords in match order (longest first).
        """
        return cls._cmd_list


class Dispatcher(object):
    """
    Parses received lines and routes them to the AtCommand handlers defined on `host`.

    Each call to dispatch() builds a fresh ParserContext over the line, matches the header,
    then tries each registered keyword until one matches.
    """

    def __init__(self, host, print_q, header=protocol.AT_HEADER,
                 header_separator=protocol.AT_HEADER_SEPARATOR, verboseprint=None):
        self._host = host
        self._print_q = print_q
        self.header = header
        self.header_separator = header_separator
        self.verboseprint = verboseprint or (lambda *args: None)

    def _handlers(self):
        """
        Yield (keyword, AtCommand) for commands implemented by the host's class.
        """
        cmd_map = AtCommand.getCommandMap()
        for kw in AtCommand.getCommandList():
            cmd = cmd_map[kw]
            if _is_method_of(self._host, cmd.command_func):
                yield (kw, cmd)

    def help_lines(self):
        return [cmd.short_help for cmd in AtCommand.getCommandIndex().values()
                if cmd.display_help and _is_method_of(self._host, cmd.command_func)]

    def dispatch(self, buffer, length=None):
        """
        Parse and execute one command line. Returns the list of reply lines.
        """
        ctx = ParserContext(buffer, length, header_separator=self.header_separator)
        self.verboseprint("Received: ", ctx.pending())

        status = ctx.compare(ParserMode.HEADER, self.header)
        if status != ParserStatus.SUCCESS:
            # A bare header ("AT") is a ping.
            if ctx.compare(ParserMode.COMMAND, self.header) == ParserStatus.SUCCESS and \
                    ctx.at_end():
                return [protocol.AT_REPLY_OK]
            return self._parse_error(status, ctx)

        start = ctx.cursor
        for (kw, cmd) in self._handlers():
            status = ctx.compare(ParserMode.COMMAND, kw)
            if status != ParserStatus.SUCCESS:
                continue  # Cursor unchanged; try the next keyword.

            if _keyword_complete(ctx, cmd):
                return self._run(kw, cmd, ctx)

            # kw is only a prefix of the received command name.
            ctx.cursor = start

        return self._parse_error(ParserStatus.ERROR_UNKNOWN_COMMAND, ctx)

    def _run(self, kw, cmd, ctx):
        try:
            replies = cmd.invoke(self._host, ctx)
        except ParserError as e:
            return self._parse_error(e.status, ctx)
        except CommandError as e:
            self._print_q.put((f"Command '{kw}' failed: {e}", MsgLevel.WARN))
            return [protocol.AT_REPLY_ERROR]

        out = list(replies or [])
        out.append(protocol.AT_REPLY_OK)
        return out

    def _parse_error(self, status, ctx):
        self.verboseprint(f"Parse error {ParserStatus.get_name(status)} at ", ctx.pending())
        return [protocol.error_reply(status)]


def _is_method_of(host, fn):
    """
    Return True if fn is defined on host's class (or a base class).
    """
    for cls in type(host).__mro__:
        if fn in vars(cls).values():
            return True
    return False


def _keyword_complete(ctx, cmd):
    """
    Return True if the keyword just matched is the whole command name: the line ends
    there, or (for commands with parameters) the '=' opening the parameter list followed.
    """
    if ctx.at_end():
        return True
    return cmd.params and ctx.buffer[ctx.cursor - 1] == protocol.AT_PARAM_START_BYTE
