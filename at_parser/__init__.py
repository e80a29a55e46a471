# (c) Copyright 2022 Aaron Kimball

import argparse
import sys

from .config import Config
from .console import AtConsole
from .device import EmulatedDevice
from .parser import ParameterType, ParseResult, ParserContext, ParserError, ParserMode, \
    ParserStatus
from .term import ConsolePrinter
import at_parser.io as io
import at_parser.protocol as protocol
import at_parser.version as version

__version__ = version.VERSION_STR

def _parseArgs(argv):
    parser = argparse.ArgumentParser(description="Console for devices with an AT command interface")
    parser.add_argument("-p", "--port", help="serial port of the device")
    parser.add_argument("-b", "--baud", type=int, help="serial baud rate")
    parser.add_argument("-e", "--emulate", action="store_true",
                        help="talk to an in-process emulated device instead of a serial port")
    parser.add_argument("-c", "--command", action="append", metavar="AT_LINE",
                        help="send this line, print the reply and exit (may be repeated)")
    parser.add_argument("-v", "--version", action="version", version=version.FULL_VERSION_STR)

    return parser.parse_args(argv)

def main(argv=None):
    args = _parseArgs(argv)

    console_printer = ConsolePrinter()
    console_printer.start()
    try:
        config = Config(console_printer.print_q)
        device = None
        if args.emulate:
            (conn, device_conn) = io.make_bidi_pipe()
            device = EmulatedDevice(device_conn, config, console_printer.print_q)
            device.start()
        elif args.port:
            baud = args.baud or config.get("serial.baud")
            conn = io.SerialConn(args.port, baud, config.get("serial.timeout"))
        else:
            console_printer.shutdown()
            print("Specify a serial port (-p) or use the emulated device (-e).", file=sys.stderr)
            return 2

        console_printer.join_q()
        console = AtConsole(conn, config, console_printer, device)
    except BaseException:
        # The console owns console_printer once created; until then shut it down ourselves.
        console_printer.shutdown()
        raise

    ret = 0
    try:
        if args.command:
            for line in args.command:
                replies = console.send_line(line)
                for reply in replies:
                    print(reply)
                if replies[-1] != protocol.AT_REPLY_OK:
                    ret = 1
        else:
            ret = console.loop()
    except io.ConnectionIOError as e:
        print(f"Error: {e}", file=sys.stderr)
        ret = 1
    finally:
        console.close()

    return ret
