from app.services.ai_service import generate_ai_reply
from app.services.broadcast_service import create_broadcast, process_due_broadcasts
from app.services.inbox_service import record_inbound_message
from app.services.message_service import normalize_inbound
from app.services.onesender_service import send_message
from app.services.settings_service import load_tenant_config
from app.services.trigger_service import find_trigger
