# (c) Copyright 2022 Aaron Kimball

import at_parser.io as io
import at_parser.term as term
from at_parser.config import Config
from at_parser.device import EmulatedDevice

import unittest

class AtTestCase(unittest.TestCase):
    """
    TestCase subclass that sets up an EmulatedDevice on one end of an in-process pipe as a
    fixture. The other end is available as `self.conn`.

    Override getConfig() as a @classmethod to supply config keys for the fixture.
    The device service thread is not started; call self.device.start() to talk to it over
    the pipe, or use self.device.handle_line() directly.
    """

    @classmethod
    def getConfig(cls):
        return {}

    def setUp(self):
        self.console_printer = term.NullPrinter()
        self.console_printer.start()

        conf = { 'dbg.historyfile': None }
        conf.update(self.getConfig())
        self.config = Config(self.console_printer.print_q, force_config=conf)

        (self.conn, device_conn) = io.make_bidi_pipe()
        self.device = EmulatedDevice(device_conn, self.config, self.console_printer.print_q)

    def tearDown(self):
        self.device.shutdown()
        self.console_printer.shutdown()

    def send(self, line):
        """
        Run one command line through the device directly and return its replies.
        """
        return self.device.handle_line(line.encode('ascii') + b'\r')
