from .inmemory_store import InMemLockProvider, InMemStoreSession, InMemTransaction
from .models import Gadget, Widget, WidgetPart

__all__ = [
    "Gadget",
    "InMemLockProvider",
    "InMemStoreSession",
    "InMemTransaction",
    "Widget",
    "WidgetPart",
]
