#!/usr/bin/env python3
# (c) Copyright 2022 Aaron Kimball

import unittest

import at_parser.version as version
from at_testcase import AtTestCase


class TestEmulatedDevice(AtTestCase):
    """
    Commands of the emulated device, executed directly through handle_line().
    """

    @classmethod
    def getConfig(cls):
        return { 'dev.mem_size': 64 }

    def test_ping(self):
        self.assertEqual(self.send('AT'), ['OK'])

    def test_version(self):
        self.assertEqual(self.send('AT+VER?'), [f'+VER: {version.VERSION_STR}', 'OK'])

    def test_help(self):
        replies = self.send('AT+HELP?')
        self.assertEqual(replies[-1], 'OK')
        self.assertEqual(len(replies), 8)  # 7 commands + OK
        self.assertTrue(any(line.startswith('+MEMW -- ') for line in replies))

    def test_memory_write_read(self):
        self.assertEqual(self.send('AT+MEMW=10,DEADBEEF'), ['OK'])
        self.assertEqual(self.device.memory[0x10:0x14], bytearray(b'\xde\xad\xbe\xef'))
        self.assertEqual(self.send('AT+MEMR=10,4'), ['+MEMR: DEADBEEF', 'OK'])
        self.assertEqual(self.send('AT+MEMR=0F,2'), ['+MEMR: 00DE', 'OK'])

    def test_memory_out_of_range(self):
        self.assertEqual(self.send('AT+MEMR=3F,2'), ['ERROR'])
        self.assertEqual(self.send('AT+MEMW=40,00'), ['ERROR'])
        self.assertEqual(self.send('AT+MEMR=00,0'), ['ERROR'])

    def test_memory_write_too_long(self):
        self.assertEqual(self.send('AT+MEMW=00,' + '00' * 17), ['ERROR_0D'])
        self.assertEqual(self.send('AT+MEMW=00,' + '11' * 16), ['OK'])

    def test_memory_bad_parameters(self):
        self.assertEqual(self.send('AT+MEMR=1,4'), ['ERROR_0A'])      # odd-length address
        self.assertEqual(self.send('AT+MEMR=00,four'), ['ERROR_0B'])  # not a decimal
        self.assertEqual(self.send('AT+MEMR=00'), ['ERROR_04'])       # missing count
        self.assertEqual(self.send('AT+MEMW=00'), ['ERROR_04'])

    def test_echo(self):
        self.assertEqual(self.send('AT+ECHO=1'), ['AT+ECHO=1', 'OK'])
        self.assertEqual(self.send('AT'), ['AT', 'OK'])
        self.assertEqual(self.send('AT+ECHO=0'), ['OK'])
        self.assertFalse(self.device.echo)

    def test_echo_bad_flag(self):
        self.assertEqual(self.send('AT+ECHO=2'), ['ERROR_06'])
        self.assertEqual(self.send('AT+ECHO=10'), ['ERROR_07'])
        self.assertEqual(self.send('AT+ECHO'), ['ERROR_05'])

    def test_echo_non_ascii(self):
        self.assertEqual(self.send('AT+ECHO=1'), ['AT+ECHO=1', 'OK'])
        replies = self.device.handle_line(b'AT+\xffX\r')
        self.assertEqual(replies, ['AT+\\xffX', 'ERROR_01'])

    def test_query_on_set_only_command(self):
        self.assertEqual(self.send('AT+ECHO?'), ['ERROR_01'])
        self.assertEqual(self.send('AT+MEMRX=00,1'), ['ERROR_01'])
        self.assertEqual(self.send('AT+OFFSET=1'), ['ERROR_01'])
        self.assertEqual(self.device.offset, 0)

    def test_offset(self):
        self.assertEqual(self.send('AT+OFFS?'), ['+OFFS: 0', 'OK'])
        self.assertEqual(self.send('AT+OFFS=-42'), ['OK'])
        self.assertEqual(self.send('AT+OFFS?'), ['+OFFS: -42', 'OK'])
        self.assertEqual(self.send('AT+OFFS=4294967296'), ['ERROR_0C'])
        self.assertEqual(self.device.offset, -42)


class TestEmulatedDeviceService(AtTestCase):
    """
    The device answering over its pipe connection on the service thread.
    """

    def setUp(self):
        super().setUp()
        self.device.start()

    def _read_reply(self):
        """
        Read reply lines through the final OK/ERROR.
        """
        lines = []
        for i in range(0, 50):
            line = self.conn.readline()
            if not line:
                continue
            text = line.decode('ascii').strip()
            lines.append(text)
            if text == 'OK' or text.startswith('ERROR'):
                return lines
        self.fail(f'No final reply; got {lines}')

    def test_round_trip(self):
        self.conn.write(b'AT+VER?\r')
        self.assertEqual(self._read_reply(), [f'+VER: {version.VERSION_STR}', 'OK'])

    def test_fragmented_input(self):
        self.conn.write(b'AT+OFF')
        self.conn.write(b'S=7\r\n')
        self.assertEqual(self._read_reply(), ['OK'])
        self.conn.write(b'AT+OFFS?\r')
        self.assertEqual(self._read_reply(), ['+OFFS: 7', 'OK'])

    def test_non_ascii_echo_keeps_service_alive(self):
        self.device.echo = True
        self.conn.write(b'AT+\xffX\r')
        self.assertEqual(self._read_reply(), ['AT+\\xffX', 'ERROR_01'])
        self.conn.write(b'AT+VER?\r')
        self.assertEqual(self._read_reply(), ['AT+VER?', f'+VER: {version.VERSION_STR}', 'OK'])
        self.assertTrue(self.device.thread.is_alive())

    def test_overlong_line_dropped(self):
        self.conn.write(b'AT+MEMW=00,' + b'00' * 40 + b'\r')  # Exceeds the 64-byte receive buffer.
        self.conn.write(b'AT\r')
        self.assertEqual(self._read_reply(), ['OK'])


if __name__ == "__main__":
    unittest.main(verbosity=2)
