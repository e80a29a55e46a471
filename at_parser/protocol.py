# (c) Copyright 2022 Aaron Kimball
#
# Wire format of AT command lines and their replies.

AT_HEADER            = 'AT'     # Command family prefix.
AT_HEADER_SEPARATOR  = '+'      # Must follow the header; starts the command token.
AT_PARAM_START       = '='      # Opens the parameter list after a command.
AT_PARAM_SEPARATOR   = ','      # Between successive parameters.
AT_QUERY             = '?'      # Suffix on commands that read a value (e.g. '+VER?').

AT_PARAM_START_BYTE  = ord(AT_PARAM_START)

AT_CMD_END           = '\r'     # End of a command line sent to the device.
AT_REPLY_END         = '\r\n'   # End of each reply line from the device.

# Any of these bytes ends the line within a receive buffer.
# (NUL covers zero-filled fixed-size buffers.)
AT_LINE_TERMINATORS  = b'\r\n\x00'

AT_REPLY_OK          = 'OK'
AT_REPLY_ERROR       = 'ERROR'  # Command recognized and parsed, but could not be executed.

AT_RX_BUFFER_SIZE    = 64       # Default receive buffer capacity in bytes.


def error_reply(status):
    """
    Format the reply for a parser failure, e.g. 'ERROR_05' for a missing parameter.
    """
    return f'{AT_REPLY_ERROR}_{status:02X}'


def is_final_reply(line):
    """
    Return True if `line` ends the response to a command.
    """
    return line == AT_REPLY_OK or line.startswith(AT_REPLY_ERROR)
