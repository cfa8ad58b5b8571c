"""Status codes returned by host script operations."""

from enum import IntEnum


class Status(IntEnum):
    OK = 0
    FAILED = 1
    ERR_INVALID_PARAMETER = 31
    ERR_ALREADY_EXISTS = 32
    ERR_DOES_NOT_EXIST = 33
    ERR_COMPILATION_FAILED = 36
    ERR_PARSE_ERROR = 43
