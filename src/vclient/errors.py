from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    CLIENT = "client"
    CONNECT = "connect"
    TRANSPORT = "transport"
    SEND = "send"
    RECEIVE = "receive"
    AUTH_REJECTED = "auth-rejected"
    CONFIG = "config"
    DATA = "data"


class ClientError(Exception):
    """Base class for every failure the client reports to its caller."""

    kind = ErrorKind.CLIENT


class ConnectError(ClientError):
    kind = ErrorKind.CONNECT


class TransportError(ClientError):
    """A send or receive on an established connection failed."""

    kind = ErrorKind.TRANSPORT


class SendError(TransportError):
    kind = ErrorKind.SEND


class ReceiveError(TransportError):
    kind = ErrorKind.RECEIVE


class AuthRejected(ClientError):
    kind = ErrorKind.AUTH_REJECTED


class ConfigError(ClientError):
    kind = ErrorKind.CONFIG


class DataFileError(ClientError):
    kind = ErrorKind.DATA
