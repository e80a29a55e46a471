# (c) Copyright 2022 Aaron Kimball
#
# Cursor-driven parser for AT-style command lines held in a caller-owned receive buffer.
#
#   HEADER COMMAND [= PARAM [<sep> PARAM]*] <terminator>
#
# A ParserContext wraps one received line. Callers match the header and command literal
# with compare(), then pull parameters off one at a time with get_parameter() or
# get_byte_array(). The cursor only moves forward on success; any failure leaves it where
# it was.

import at_parser.protocol as protocol


class ParserStatus(object):
    """
    Result codes for parser operations. Exactly one of these is returned from each call.
    """

    SUCCESS                                     =  0
    ERROR_UNKNOWN_COMMAND                       =  1
    ERROR_MODE                                  =  2
    ERROR_HEADER_NOT_FOUND                      =  3
    ERROR_SEPARATOR_NOT_FOUND                   =  4
    ERROR_PARAMETER_NOT_FOUND                   =  5
    ERROR_PARAMETER_BIT_INVALID                 =  6   # Single char other than '0'/'1'.
    ERROR_PARAMETER_BIT_OVERFLOW                =  7   # More than one char in a boolean.
    ERROR_PARAMETER_HEXA_INVALID                =  8
    ERROR_PARAMETER_HEXA_OVERFLOW               =  9
    ERROR_PARAMETER_HEXA_ODD_SIZE               = 10
    ERROR_PARAMETER_DEC_INVALID                 = 11
    ERROR_PARAMETER_DEC_OVERFLOW                = 12
    ERROR_PARAMETER_BYTE_ARRAY_INVALID_LENGTH   = 13

    _messages = {
        SUCCESS: 'Success',
        ERROR_UNKNOWN_COMMAND: 'Unknown command',
        ERROR_MODE: 'Invalid compare mode',
        ERROR_HEADER_NOT_FOUND: 'Header not found',
        ERROR_SEPARATOR_NOT_FOUND: 'Separator not found',
        ERROR_PARAMETER_NOT_FOUND: 'Parameter not found',
        ERROR_PARAMETER_BIT_INVALID: 'Invalid boolean parameter',
        ERROR_PARAMETER_BIT_OVERFLOW: 'Boolean parameter too long',
        ERROR_PARAMETER_HEXA_INVALID: 'Invalid hexadecimal parameter',
        ERROR_PARAMETER_HEXA_OVERFLOW: 'Hexadecimal parameter overflow',
        ERROR_PARAMETER_HEXA_ODD_SIZE: 'Odd number of hexadecimal digits',
        ERROR_PARAMETER_DEC_INVALID: 'Invalid decimal parameter',
        ERROR_PARAMETER_DEC_OVERFLOW: 'Decimal parameter overflow',
        ERROR_PARAMETER_BYTE_ARRAY_INVALID_LENGTH: 'Byte array too long',
    }

    @staticmethod
    def successful(status):
        return status == ParserStatus.SUCCESS

    @staticmethod
    def is_valid(status):
        return status in ParserStatus._messages

    @staticmethod
    def get_name(status):
        """
        Return the symbolic name for a status code, e.g. 'ERROR_HEADER_NOT_FOUND'.
        """
        for (name, val) in vars(ParserStatus).items():
            if not name.startswith('_') and isinstance(val, int) and val == status:
                return name
        return f'<unknown status {status}>'

    @staticmethod
    def get_message(status):
        """
        Return a user-friendly message for a status code.
        """
        return ParserStatus._messages.get(status, f'Unknown status {status}')


class ParserMode(object):
    """
    How compare() treats a literal.

    COMMAND: the literal is the command token. A '=' opening the parameter list is consumed
    along with it.
    HEADER: the literal is the command-family prefix (e.g. 'AT') and must be followed by the
    header separator, which starts the command token.
    """
    COMMAND = 0
    HEADER = 1


class ParameterType(object):
    """
    Selects the decoder used by get_parameter().
    """
    BOOLEAN = 0
    HEXADECIMAL = 1
    DECIMAL = 2


# Destination widths for decoded numbers.
PARAMETER_HEXA_MAX_DIGITS = 8           # 32 bits.
PARAMETER_DEC_MAX = (1 << 31) - 1
PARAMETER_DEC_MIN = -(1 << 31)

_CHAR_MINUS = ord('-')
_CHAR_ZERO = ord('0')
_CHAR_ONE = ord('1')


def _hex_digit_value(c):
    """
    Return the value of an ASCII hex digit, or None if c is not one.
    """
    if 0x30 <= c <= 0x39:      # 0-9
        return c - 0x30
    elif 0x41 <= c <= 0x46:    # A-F
        return c - 0x41 + 10
    elif 0x61 <= c <= 0x66:    # a-f
        return c - 0x61 + 10
    return None


def _is_dec_digit(c):
    return 0x30 <= c <= 0x39


def _to_byte(char):
    """
    Convert a separator given as str, bytes or int into a single byte value.
    """
    if isinstance(char, int):
        if not 0 <= char <= 0xFF:
            raise ValueError(f'Separator out of byte range: {char}')
        return char

    if isinstance(char, str):
        char = char.encode('ascii')
    if len(char) != 1:
        raise ValueError(f'Separator must be a single character: {char!r}')
    return char[0]


def _to_literal(literal):
    """
    Convert a literal to bytes. A NUL byte terminates the literal.
    """
    if isinstance(literal, str):
        literal = literal.encode('ascii')
    literal = bytes(literal)
    nul = literal.find(b'\x00')
    if nul >= 0:
        literal = literal[:nul]
    return literal


class ParserError(Exception):
    """
    Raised by ParseResult.unwrap() when a parser operation failed.
    """

    def __init__(self, status, msg=None):
        if msg is None:
            msg = f'{ParserStatus.get_message(status)} ({ParserStatus.get_name(status)})'
        super().__init__(msg)
        self.status = status


class ParseResult(object):
    """
    Tagged result of a parser operation: a status code and, on success, the decoded value.
    For byte-array extraction `extracted_length` holds the number of decoded bytes.
    """

    __slots__ = ('status', 'value', 'extracted_length')

    def __init__(self, status, value=None, extracted_length=0):
        self.status = status
        self.value = value
        self.extracted_length = extracted_length

    @property
    def ok(self):
        return self.status == ParserStatus.SUCCESS

    def unwrap(self):
        """
        Return the decoded value, or raise ParserError if the operation failed.
        """
        if not self.ok:
            raise ParserError(self.status)
        return self.value

    def __eq__(self, other):
        if not isinstance(other, ParseResult):
            return NotImplemented
        return (self.status, self.value, self.extracted_length) == \
            (other.status, other.value, other.extracted_length)

    def __repr__(self):
        if self.ok:
            return f'ParseResult(SUCCESS, value={self.value!r})'
        return f'ParseResult({ParserStatus.get_name(self.status)})'


def _failure(status):
    return ParseResult(status)


class ParserContext(object):
    """
    Parse state for a single received command line.

    The buffer is borrowed, not copied: the context holds a memoryview onto the caller's
    bytes/bytearray. Only the first `length` bytes are considered. A context must not be
    shared between threads, nor reused for a second line.
    """

    def __init__(self, buffer, length=None, header_separator=protocol.AT_HEADER_SEPARATOR):
        """
        @param buffer a bytes-like object holding the line (a str is encoded as ASCII).
        @param length the number of valid bytes in buffer; defaults to the whole buffer.
        @param header_separator the character that must follow a header literal.
        """
        if isinstance(buffer, str):
            buffer = buffer.encode('ascii')

        self.buffer = memoryview(buffer).cast('B')
        if length is None:
            length = len(self.buffer)
        if length < 0 or length > len(self.buffer):
            raise ValueError(f'Invalid length {length} for buffer of size {len(self.buffer)}')

        self.length = length
        self.cursor = 0
        self.separator_offset = 0
        self.header_separator = _to_byte(header_separator)

        # The line ends at the first terminator char within the valid range.
        line_end = length
        for i in range(0, length):
            if self.buffer[i] in protocol.AT_LINE_TERMINATORS:
                line_end = i
                break
        self.line_end = line_end

    def __repr__(self):
        return f'ParserContext({self.pending()!r}, cursor={self.cursor}, length={self.length})'

    def at_end(self):
        """
        Return True if the whole line has been consumed.
        """
        return self.cursor >= self.line_end

    def pending(self):
        """
        Return the unconsumed part of the line as bytes (e.g., to report a failing parameter).
        """
        return bytes(self.buffer[self.cursor:self.line_end])

    def compare(self, mode, literal):
        """
        Match `literal` at the cursor.

        In HEADER mode the literal must be followed by the header separator. In COMMAND mode
        a following '=' is consumed along with the literal. The cursor is unchanged on
        failure so the caller can try another literal.

        Returns a ParserStatus code.
        """
        if mode != ParserMode.COMMAND and mode != ParserMode.HEADER:
            return ParserStatus.ERROR_MODE

        literal = _to_literal(literal)
        start = self.cursor
        end = start + len(literal)
        if end > self.line_end:
            return ParserStatus.ERROR_UNKNOWN_COMMAND

        for idx in range(0, len(literal)):
            if self.buffer[start + idx] != literal[idx]:
                return ParserStatus.ERROR_UNKNOWN_COMMAND

        if mode == ParserMode.HEADER:
            if end >= self.line_end or self.buffer[end] != self.header_separator:
                return ParserStatus.ERROR_HEADER_NOT_FOUND
            self.cursor = end  # Separator belongs to the command token that follows.
        else:
            if end < self.line_end and self.buffer[end] == protocol.AT_PARAM_START_BYTE:
                end += 1
            self.cursor = end

        return ParserStatus.SUCCESS

    def _find_extent(self, separator, last_param):
        """
        Locate the end of the next parameter. On success sets separator_offset and returns
        SUCCESS; the extent is [cursor, separator_offset).
        """
        start = self.cursor
        if last_param:
            end = self.line_end
        else:
            sep = _to_byte(separator)
            end = start
            while end < self.line_end and self.buffer[end] != sep:
                end += 1
            if end >= self.line_end:
                return ParserStatus.ERROR_SEPARATOR_NOT_FOUND

        if end <= start:
            return ParserStatus.ERROR_PARAMETER_NOT_FOUND

        self.separator_offset = end
        return ParserStatus.SUCCESS

    def _advance(self, last_param):
        if last_param:
            self.cursor = self.separator_offset
        else:
            self.cursor = self.separator_offset + 1

    def _decode_boolean(self, start, end):
        if end - start > 1:
            return _failure(ParserStatus.ERROR_PARAMETER_BIT_OVERFLOW)

        c = self.buffer[start]
        if c == _CHAR_ZERO:
            return ParseResult(ParserStatus.SUCCESS, False)
        elif c == _CHAR_ONE:
            return ParseResult(ParserStatus.SUCCESS, True)
        return _failure(ParserStatus.ERROR_PARAMETER_BIT_INVALID)

    def _check_hex(self, start, end):
        """
        Validate [start, end) as a string of hex digit pairs. Returns a ParserStatus code.
        """
        for idx in range(start, end):
            if _hex_digit_value(self.buffer[idx]) is None:
                return ParserStatus.ERROR_PARAMETER_HEXA_INVALID
        if (end - start) % 2 != 0:
            return ParserStatus.ERROR_PARAMETER_HEXA_ODD_SIZE
        return ParserStatus.SUCCESS

    def _decode_hexadecimal(self, start, end):
        status = self._check_hex(start, end)
        if status != ParserStatus.SUCCESS:
            return _failure(status)
        if end - start > PARAMETER_HEXA_MAX_DIGITS:
            return _failure(ParserStatus.ERROR_PARAMETER_HEXA_OVERFLOW)

        value = 0
        for idx in range(start, end):
            value = (value << 4) | _hex_digit_value(self.buffer[idx])
        return ParseResult(ParserStatus.SUCCESS, value)

    def _decode_decimal(self, start, end):
        negative = self.buffer[start] == _CHAR_MINUS
        if negative:
            start += 1

        if start >= end:
            return _failure(ParserStatus.ERROR_PARAMETER_DEC_INVALID)  # Lone '-'.
        for idx in range(start, end):
            if not _is_dec_digit(self.buffer[idx]):
                return _failure(ParserStatus.ERROR_PARAMETER_DEC_INVALID)

        limit = -PARAMETER_DEC_MIN if negative else PARAMETER_DEC_MAX
        magnitude = 0
        for idx in range(start, end):
            magnitude = magnitude * 10 + (self.buffer[idx] - _CHAR_ZERO)
            if magnitude > limit:
                return _failure(ParserStatus.ERROR_PARAMETER_DEC_OVERFLOW)

        return ParseResult(ParserStatus.SUCCESS, -magnitude if negative else magnitude)

    def get_parameter(self, param_type, separator, last_param):
        """
        Decode the next parameter as a boolean, hexadecimal or decimal value.

        @param param_type a ParameterType.
        @param separator the character that ends this parameter (ignored for the last one).
        @param last_param if true, the parameter runs to the end of the line.
        @return a ParseResult whose value is a bool or int on success.
        """
        if param_type == ParameterType.BOOLEAN:
            decode = self._decode_boolean
        elif param_type == ParameterType.HEXADECIMAL:
            decode = self._decode_hexadecimal
        elif param_type == ParameterType.DECIMAL:
            decode = self._decode_decimal
        else:
            raise ValueError(f'Unknown parameter type: {param_type}')

        status = self._find_extent(separator, last_param)
        if status != ParserStatus.SUCCESS:
            return _failure(status)

        result = decode(self.cursor, self.separator_offset)
        if result.ok:
            self._advance(last_param)
        return result

    def get_byte_array(self, separator, last_param, max_length, out=None):
        """
        Decode the next parameter as a hex string of bytes.

        @param separator the character that ends this parameter (ignored for the last one).
        @param last_param if true, the parameter runs to the end of the line.
        @param max_length the maximum number of bytes to accept.
        @param out optional writable buffer (at least max_length long) to receive the bytes.
        @return a ParseResult with the decoded bytes as value and their count in
            extracted_length.
        """
        if out is not None and len(out) < max_length:
            raise ValueError(f'Output buffer of size {len(out)} is smaller than {max_length}')

        status = self._find_extent(separator, last_param)
        if status != ParserStatus.SUCCESS:
            return _failure(status)

        start = self.cursor
        end = self.separator_offset
        status = self._check_hex(start, end)
        if status != ParserStatus.SUCCESS:
            return _failure(status)

        num_bytes = (end - start) // 2
        if num_bytes > max_length:
            return _failure(ParserStatus.ERROR_PARAMETER_BYTE_ARRAY_INVALID_LENGTH)

        decoded = bytearray(num_bytes)
        for i in range(0, num_bytes):
            hi = _hex_digit_value(self.buffer[start + 2 * i])
            lo = _hex_digit_value(self.buffer[start + 2 * i + 1])
            decoded[i] = (hi << 4) | lo

        if out is not None:
            out[0:num_bytes] = decoded

        self._advance(last_param)
        return ParseResult(ParserStatus.SUCCESS, bytes(decoded), num_bytes)
