from .cache import DirectoryCache
from .provider import BootResult, DirectoryProvider, bootstrap_provider

__all__ = ["BootResult", "DirectoryCache", "DirectoryProvider", "bootstrap_provider"]
