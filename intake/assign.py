import random
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from loguru import logger

from connectors.supabase_store import store

def pick_least_loaded(members: List[Dict[str, Any]], assignee_ids: List[str],
                      rng=random) -> Optional[Dict[str, Any]]:
    """Member with the fewest current assignments, ties broken at random."""
    if not members:
        return None

    counts = Counter(assignee_ids)
    fewest = min(counts.get(m["user_id"], 0) for m in members)
    candidates = [m for m in members if counts.get(m["user_id"], 0) == fewest]
    return rng.choice(candidates)

def auto_assign(lead_id: str) -> Optional[str]:
    """Assign a new lead to one sales/telesales member; returns the user id or None."""
    try:
        chosen = pick_least_loaded(store.list_sales_members(), store.list_assignee_user_ids())
        if not chosen:
            logger.info("No sales/telesales members found for auto-assignment")
            return None

        role = "telesales" if chosen.get("role") == "telesales" else "member"
        store.assign_lead(lead_id, chosen["user_id"], role, datetime.now(timezone.utc).isoformat())

        logger.info(f"Lead {lead_id} auto-assigned to {chosen['user_id']}")
        return chosen["user_id"]

    except Exception as e:
        logger.error(f"Auto-assign failed for lead {lead_id}: {e}")
        return None
