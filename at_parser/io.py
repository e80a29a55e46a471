# (c) Copyright 2022 Aaron Kimball
#
# Connections that carry AT traffic: a serial port, or an in-process pipe pair for talking to
# an emulated device.

import threading
import time

import serial


class ConnectionIOError(Exception):
    """
    Base class for I/O errors communicating with a device.
    """
    pass


class NoConnectionException(ConnectionIOError):
    """ We're not actually connected in the first place. """
    pass


class DisconnectedException(ConnectionIOError):
    """ Disconnected (or timed out) during the operation. """
    pass


class SerialConn(object):
    """
    Serial port connection to a device.
    """

    def __init__(self, port, baud=9600, timeout=0.1):
        self._port = port
        self._baud = baud
        self._timeout = timeout
        self._conn = serial.Serial(port, baud, timeout=timeout)

    def __repr__(self):
        return f'SerialConn({self._port}, {self._baud})'

    def available(self):
        """ Return the number of bytes waiting to be read. """
        return self._conn.in_waiting

    def read(self, n):
        return self._conn.read(n)

    def readline(self):
        """ Read through the next '\\n'; may return a partial line on timeout. """
        return self._conn.readline()

    def write(self, data):
        self._conn.write(data)
        self._conn.flush()

    def is_open(self):
        return self._conn.is_open

    def reopen(self):
        self.close()
        self._conn = serial.Serial(self._port, self._baud, timeout=self._timeout)

    def close(self):
        if self._conn.is_open:
            self._conn.close()


class _PipeBuffer(object):
    """
    One direction of a PipeConn pair: a byte buffer with a condition variable.
    """

    def __init__(self):
        self.data = bytearray()
        self.cv = threading.Condition()


class PipeConn(object):
    """
    One end of an in-process, bidirectional byte pipe. Created in pairs by make_bidi_pipe().
    Reads block for at most `timeout` seconds, like a serial port.
    """

    def __init__(self, recv_buf, send_buf, timeout=0.1):
        self._recv = recv_buf
        self._send = send_buf
        self._timeout = timeout
        self._open = True

    def __repr__(self):
        return 'PipeConn()'

    def available(self):
        with self._recv.cv:
            return len(self._recv.data)

    def _wait_for(self, predicate):
        deadline = time.monotonic() + self._timeout
        while not predicate():
            remaining = deadline - time.monotonic()
            if remaining <= 0 or not self._open:
                return False
            self._recv.cv.wait(remaining)
        return True

    def read(self, n):
        """ Read up to n bytes; returns early with what is available at timeout. """
        with self._recv.cv:
            self._wait_for(lambda: len(self._recv.data) > 0)
            out = bytes(self._recv.data[:n])
            del self._recv.data[:n]
            return out

    def readline(self):
        """ Read through the next '\\n'; returns whatever is buffered on timeout. """
        with self._recv.cv:
            self._wait_for(lambda: b'\n' in self._recv.data)
            idx = self._recv.data.find(b'\n')
            end = idx + 1 if idx >= 0 else len(self._recv.data)
            out = bytes(self._recv.data[:end])
            del self._recv.data[:end]
            return out

    def write(self, data):
        if not self._open:
            raise NoConnectionException('Pipe is closed')
        with self._send.cv:
            self._send.data.extend(data)
            self._send.cv.notify_all()

    def is_open(self):
        return self._open

    def reopen(self):
        self._open = True

    def close(self):
        self._open = False
        with self._recv.cv:
            self._recv.cv.notify_all()


def make_bidi_pipe(timeout=0.1):
    """
    Return a pair of connected PipeConns (left, right). Bytes written to one are read
    from the other.
    """
    a_to_b = _PipeBuffer()
    b_to_a = _PipeBuffer()
    left = PipeConn(b_to_a, a_to_b, timeout)
    right = PipeConn(a_to_b, b_to_a, timeout)
    return (left, right)
