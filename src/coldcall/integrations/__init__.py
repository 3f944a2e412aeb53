"""Cold-Call Integration Clients.

Client wrappers for the vendor APIs used by the cold-call service: OpenAI,
browser automation, Google Places, Yelp and Vapi.

Clients are resolved on first attribute access, so importing the package
does not import every vendor SDK.
"""

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .browser_use import BrowserUseClient
    from .google_places import GoogleMapsClient
    from .llm import LLMClient
    from .vapi import VapiClient
    from .yelp import YelpClient

_CLIENT_MODULES = {
    "BrowserUseClient": ".browser_use",
    "GoogleMapsClient": ".google_places",
    "LLMClient": ".llm",
    "VapiClient": ".vapi",
    "YelpClient": ".yelp",
}


def __getattr__(name: str):
    """Import a client class on first access."""
    module_name = _CLIENT_MODULES.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    client = getattr(importlib.import_module(module_name, __name__), name)
    globals()[name] = client
    return client


__all__ = list(_CLIENT_MODULES)
