from app.models.autoreply import Autoreply
from app.models.broadcast_log import BroadcastLog
from app.models.broadcast_queue_item import BroadcastQueueItem
from app.models.contact import Contact
from app.models.inbox_message import InboxMessage, InboxStatus
from app.models.knowledge_entry import KnowledgeEntry
from app.models.setting import Setting

__all__ = [
    "Autoreply",
    "BroadcastLog",
    "BroadcastQueueItem",
    "Contact",
    "InboxMessage",
    "InboxStatus",
    "KnowledgeEntry",
    "Setting",
]
