# (c) Copyright 2022 Aaron Kimball
#
# An in-process device that answers AT commands, for trying out and testing the parser
# without hardware.

import threading
import time

import at_parser.protocol as protocol
import at_parser.version as version
from at_parser.commands import AtCommand, CommandError, Dispatcher
from at_parser.parser import ParameterType
from at_parser.rx import ReceiveBuffer
from at_parser.term import MsgLevel

MEMW_MAX_BYTES = 16   # Most bytes one +MEMW may write.
MEMR_MAX_BYTES = 32   # Most bytes one +MEMR may return.


class EmulatedDevice(object):
    """
    Emulates the command interface of a device: a receive buffer filled from the
    connection, a dispatcher that parses each completed line, and a small memory the
    commands operate on.

    Runs on its own thread once start() is called. handle_line() may also be called directly.
    """

    def __init__(self, conn, config, print_q):
        self._conn = conn
        self._config = config
        self._print_q = print_q

        self.separator = config.get("at.separator")
        self.memory = bytearray(config.get("dev.mem_size"))
        self.echo = False
        self.offset = 0

        self._dispatcher = Dispatcher(self, print_q, header=config.get("at.header"),
                                      header_separator=config.get("at.header_separator"),
                                      verboseprint=config.verboseprint)
        self._rx = ReceiveBuffer(self._on_line, config.get("at.rx_buffer_size"), print_q)

        self.stay_alive = True
        self.thread = threading.Thread(target=self.service, name="Emulated AT device")

    def start(self):
        self.thread.start()

    def shutdown(self, wait=True):
        """
        Stop the service.
        """
        self.stay_alive = False
        if wait and self.thread.is_alive():
            self.thread.join()

    def service(self):
        """
        Read bytes from the connection and answer each complete line.
        """
        while self.stay_alive:
            if not self._conn.available():
                time.sleep(0.01)
                continue

            self._rx.feed(self._conn.read(self._conn.available()))

    def _on_line(self, buffer, length):
        for reply in self.handle_line(buffer, length):
            self._send(reply)

    def handle_line(self, buffer, length=None):
        """
        Parse and execute one command line; return the reply lines.
        """
        replies = self._dispatcher.dispatch(buffer, length)
        if self.echo:
            if length is None:
                length = len(buffer)
            echoed = bytes(buffer[0:length]).decode('ascii', errors='backslashreplace')
            replies.insert(0, echoed.rstrip('\r\n\x00'))
        return replies

    def _send(self, text):
        self._conn.write((text + protocol.AT_REPLY_END).encode('ascii'))

    def _check_range(self, addr, count):
        if addr + count > len(self.memory):
            raise CommandError(f'Address range {addr:#x}+{count} outside {len(self.memory)}-byte memory')

    # Command handlers. Parse failures propagate as ParserError from unwrap().

    @AtCommand(keywords=['+VER?'])
    def _version(self, ctx):
        """
        Report the version.
        """
        return [f'+VER: {version.VERSION_STR}']

    @AtCommand(keywords=['+HELP?'])
    def _help(self, ctx):
        """
        List the supported commands.
        """
        return self._dispatcher.help_lines()

    @AtCommand(keywords=['+ECHO'], params=True)
    def _set_echo(self, ctx):
        """
        Echo received lines back before the reply.

            Syntax: AT+ECHO=<0|1>
        """
        self.echo = ctx.get_parameter(ParameterType.BOOLEAN, self.separator, True).unwrap()
        return None

    @AtCommand(keywords=['+MEMR'], params=True)
    def _mem_read(self, ctx):
        """
        Read bytes from memory, returned as hex.

            Syntax: AT+MEMR=<addr (hex)>,<count (dec)>
        """
        addr = ctx.get_parameter(ParameterType.HEXADECIMAL, self.separator, False).unwrap()
        count = ctx.get_parameter(ParameterType.DECIMAL, self.separator, True).unwrap()
        if count <= 0 or count > MEMR_MAX_BYTES:
            raise CommandError(f'Read count must be 1..{MEMR_MAX_BYTES}')
        self._check_range(addr, count)

        return [f'+MEMR: {self.memory[addr:addr + count].hex().upper()}']

    @AtCommand(keywords=['+MEMW'], params=True)
    def _mem_write(self, ctx):
        """
        Write bytes to memory.

            Syntax: AT+MEMW=<addr (hex)>,<data (hex bytes)>
        """
        addr = ctx.get_parameter(ParameterType.HEXADECIMAL, self.separator, False).unwrap()
        data = bytearray(MEMW_MAX_BYTES)
        result = ctx.get_byte_array(self.separator, True, MEMW_MAX_BYTES, data)
        result.unwrap()

        self._check_range(addr, result.extracted_length)
        self.memory[addr:addr + result.extracted_length] = data[0:result.extracted_length]
        self._print_q.put((f'Wrote {result.extracted_length} bytes at {addr:#06x}', MsgLevel.INFO))
        return None

    @AtCommand(keywords=['+OFFS?'])
    def _get_offset(self, ctx):
        """
        Report the calibration offset.
        """
        return [f'+OFFS: {self.offset}']

    @AtCommand(keywords=['+OFFS'], params=True)
    def _set_offset(self, ctx):
        """
        Set the signed calibration offset.

            Syntax: AT+OFFS=<offset (dec)>
        """
        self.offset = ctx.get_parameter(ParameterType.DECIMAL, self.separator, True).unwrap()
        return None
