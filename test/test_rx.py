#!/usr/bin/env python3
# (c) Copyright 2022 Aaron Kimball

import queue
import unittest

from at_parser.rx import ReceiveBuffer
from at_parser.term import MsgLevel


class TestReceiveBuffer(unittest.TestCase):

    def setUp(self):
        self.lines = []
        self.print_q = queue.Queue()

    def _on_line(self, buffer, length):
        self.lines.append(bytes(buffer[0:length]))

    def _rx(self, capacity=64):
        return ReceiveBuffer(self._on_line, capacity, self.print_q)

    def test_single_line(self):
        rx = self._rx()
        self.assertEqual(rx.feed(b"AT\r"), 1)
        self.assertEqual(self.lines, [b"AT"])
        self.assertEqual(rx.length, 0)

    def test_crlf_and_lf(self):
        rx = self._rx()
        self.assertEqual(rx.feed(b"AT\r\nAT+X=1\r\nAT+Y\n"), 3)
        self.assertEqual(self.lines, [b"AT", b"AT+X=1", b"AT+Y"])

    def test_split_across_feeds(self):
        rx = self._rx()
        rx.feed(b"AT+M")
        rx.feed(b"EMR=00")
        self.assertEqual(self.lines, [])
        rx.feed(b",4\r")
        self.assertEqual(self.lines, [b"AT+MEMR=00,4"])

    def test_blank_lines_ignored(self):
        rx = self._rx()
        self.assertEqual(rx.feed(b"\r\r\n\nAT\r"), 1)
        self.assertEqual(self.lines, [b"AT"])

    def test_exact_capacity(self):
        rx = self._rx(capacity=2)
        rx.feed(b"AT\r")
        self.assertEqual(self.lines, [b"AT"])
        self.assertEqual(rx.overflow_count, 0)

    def test_overflow_drops_line(self):
        rx = self._rx(capacity=4)
        self.assertEqual(rx.feed(b"ABCDEFG\rAT\r"), 1)
        self.assertEqual(self.lines, [b"AT"])
        self.assertEqual(rx.overflow_count, 1)
        (msg, level) = self.print_q.get_nowait()
        self.assertEqual(level, MsgLevel.WARN)

    def test_reset(self):
        rx = self._rx()
        rx.feed(b"AT+GARB")
        rx.reset()
        rx.feed(b"AT\r")
        self.assertEqual(self.lines, [b"AT"])

    def test_callback_error_resets_buffer(self):
        def _fail(buffer, length):
            raise RuntimeError("boom")

        rx = ReceiveBuffer(_fail, 16)
        with self.assertRaises(RuntimeError):
            rx.feed(b"AT\r")
        self.assertEqual(rx.length, 0)

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            ReceiveBuffer(self._on_line, 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
