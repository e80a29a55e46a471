# (c) Copyright 2022 Aaron Kimball
#
# Fixed-size receive buffer that assembles incoming bytes into command lines.

import at_parser.protocol as protocol
from at_parser.term import MsgLevel

_CR = ord('\r')
_LF = ord('\n')


class ReceiveBuffer(object):
    """
    Collects bytes from a transport into a preallocated buffer of fixed capacity.

    When a line terminator arrives, `on_line(buffer, length)` is called with the buffer and
    the number of valid bytes in it. The buffer is reused for the next line as soon as the
    callback returns, so the callback must finish with it (e.g., parse it) before returning.

    A line that does not fit is dropped: everything up to the next terminator is discarded.
    """

    def __init__(self, on_line, capacity=protocol.AT_RX_BUFFER_SIZE, print_q=None):
        if capacity <= 0:
            raise ValueError(f'Receive buffer capacity must be positive: {capacity}')
        self._on_line = on_line
        self._print_q = print_q
        self.buffer = bytearray(capacity)
        self.capacity = capacity
        self.length = 0
        self.overflow_count = 0
        self._overflowed = False   # Discarding until the next terminator.
        self._last_was_cr = False

    def reset(self):
        """
        Forget any partially received line.
        """
        self.length = 0
        self._overflowed = False
        self._last_was_cr = False

    def feed(self, data):
        """
        Append received bytes. Returns the number of complete lines delivered to on_line.
        """
        lines = 0
        for b in data:
            if b == _CR or b == _LF:
                if b == _LF and self._last_was_cr:
                    # Second half of a CRLF pair.
                    self._last_was_cr = False
                    continue
                self._last_was_cr = (b == _CR)
                if self._end_line():
                    lines += 1
                continue

            self._last_was_cr = False
            if self._overflowed:
                continue
            if self.length >= self.capacity:
                self._overflowed = True
                self.overflow_count += 1
                if self._print_q is not None:
                    self._print_q.put((f'Receive buffer overflow; dropping line ({self.capacity} bytes max)',
                                       MsgLevel.WARN))
                continue

            self.buffer[self.length] = b
            self.length += 1

        return lines

    def _end_line(self):
        """
        Handle a terminator. Returns True if a line was delivered.
        """
        if self._overflowed:
            self.reset()
            return False

        length = self.length
        if length == 0:
            return False  # Blank line.

        try:
            self._on_line(self.buffer, length)
        finally:
            self.length = 0
        return True
