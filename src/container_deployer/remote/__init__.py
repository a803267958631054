"""Remote command execution."""

from .host import RemoteExecutor, RemoteHost, check
from .operations import OperationCatalog, RemoteOperation

__all__ = ["OperationCatalog", "RemoteExecutor", "RemoteHost", "RemoteOperation", "check"]
