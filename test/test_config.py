#!/usr/bin/env python3
# (c) Copyright 2022 Aaron Kimball

import os.path
import queue
import tempfile
import unittest

import at_parser.serialize as serialize
from at_parser.config import Config, get_conf_keys
from at_parser.term import MsgLevel


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.print_q = queue.Queue()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.filename = os.path.join(self.tmpdir.name, 'at_parser.conf')

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_defaults(self):
        config = Config(self.print_q, filename=self.filename)
        self.assertEqual(config.get('at.header'), 'AT')
        self.assertEqual(config.get('at.header_separator'), '+')
        self.assertEqual(config.get('at.separator'), ',')
        self.assertEqual(config.get('at.rx_buffer_size'), 64)
        self.assertFalse(os.path.exists(self.filename))  # Nothing written until a change.

    def test_persist_and_reload(self):
        config = Config(self.print_q, filename=self.filename)
        config.set('at.separator', ';')
        config.set('serial.baud', 115200)
        self.assertTrue(os.path.exists(self.filename))

        reloaded = Config(self.print_q, filename=self.filename)
        self.assertEqual(reloaded.get('at.separator'), ';')
        self.assertEqual(reloaded.get('serial.baud'), 115200)
        self.assertEqual(reloaded.get('at.header'), 'AT')

    def test_unknown_key(self):
        config = Config(self.print_q, filename=self.filename)
        with self.assertRaises(KeyError):
            config.get('no.such.key')
        with self.assertRaises(KeyError):
            config.set('no.such.key', 1)
        with self.assertRaises(KeyError):
            Config(self.print_q, force_config={'no.such.key': 1})

    def test_force_config_not_persisted(self):
        config = Config(self.print_q, force_config={'at.separator': ';'}, filename=self.filename)
        self.assertEqual(config.get('at.separator'), ';')
        config.set('dev.mem_size', 16)
        self.assertFalse(os.path.exists(self.filename))

    def test_corrupt_file(self):
        with open(self.filename, 'w') as f:
            f.write("formatversion = 1\nconfig = {'at.separator': \n")
        config = Config(self.print_q, filename=self.filename)
        self.assertEqual(config.get('at.separator'), ',')
        (msg, level) = self.print_q.get_nowait()
        self.assertEqual(level, MsgLevel.WARN)

    def test_code_is_not_executed(self):
        with open(self.filename, 'w') as f:
            f.write("formatversion = 1\nconfig = {'at.separator': str(1)}\n")
        config = Config(self.print_q, filename=self.filename)
        self.assertEqual(config.get('at.separator'), ',')

    def test_newer_format_rejected(self):
        with open(self.filename, 'w') as f:
            f.write(f"formatversion = {serialize.CONF_FMT_VERSION + 1}\n")
            f.write("config = {'at.separator': ';'}\n")
        config = Config(self.print_q, filename=self.filename)
        self.assertEqual(config.get('at.separator'), ',')
        (msg, level) = self.print_q.get_nowait()
        self.assertEqual(level, MsgLevel.ERR)

    def test_verbose_print(self):
        config = Config(self.print_q, force_config={'dbg.verbose': True})
        while not self.print_q.empty():
            self.print_q.get_nowait()
        config.verboseprint('value: ', 12)
        self.assertEqual(self.print_q.get_nowait(), ('value: 12', MsgLevel.DEBUG))

        config.set('dbg.verbose', False)
        config.verboseprint('hidden')
        self.assertTrue(self.print_q.empty())

    def test_conf_keys(self):
        self.assertIn('at.separator', get_conf_keys())


if __name__ == "__main__":
    unittest.main(verbosity=2)
