from keyseed.clients.directory import DirectoryClient
from keyseed.clients.identity import IdentityClient
from keyseed.clients.memory import InMemoryDirectory

__all__ = ["DirectoryClient", "IdentityClient", "InMemoryDirectory"]
