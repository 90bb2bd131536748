from enum import Enum


class JobTypes(Enum):
    """Job types the worker ships handlers for. Producers may enqueue any string."""
    menu_sync = "menu_sync"
    inventory_sync = "inventory_sync"
    send_notification = "send_notification"
