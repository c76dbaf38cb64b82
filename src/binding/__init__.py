"""Assembly binding redirect computation and config-file maintenance."""

from .config_manager import BindingRedirectManager
from .redirects import Assembly, AssemblyBinding, AssemblyReference, get_binding_redirects

__all__ = [
    "Assembly",
    "AssemblyBinding",
    "AssemblyReference",
    "BindingRedirectManager",
    "get_binding_redirects",
]
