import logging
from supabase import create_client, Client

from notice_tracker.config import Settings

logger = logging.getLogger(__name__)


def create_supabase(settings: Settings) -> Client | None:
    """
    Build the Supabase client for this process.

    Called once at start-up; the returned client is passed explicitly to the
    stores. Returns None when the store is not configured.
    """
    if not settings.supabase_url:
        logger.warning("SUPABASE_URL not set. Store features will be disabled.")
        return None

    if not settings.supabase_key:
        logger.warning("No Supabase key found. Store features will be disabled.")
        return None

    return create_client(settings.supabase_url, settings.supabase_key)
