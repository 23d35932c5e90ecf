"""Redis key layout for the request-log store.

    apiprobe:log:{record_id}                 -> STRING (record JSON)
    apiprobe:subscription:{sub_id}:logs      -> ZSET record_id scored by timestamp ms
    apiprobe:subscription:{sub_id}           -> STRING (subscription JSON)
    apiprobe:api:{api_id}:subscriptions      -> SET of subscription ids
"""

KEY_PREFIX = "apiprobe"


def request_log_key(record_id: str) -> str:
    """Build the key holding one serialized record."""
    return f"{KEY_PREFIX}:log:{record_id}"


def subscription_logs_key(subscription_id: str) -> str:
    """Build the per-subscription timestamp index key."""
    return f"{KEY_PREFIX}:subscription:{subscription_id}:logs"


def subscription_key(subscription_id: str) -> str:
    return f"{KEY_PREFIX}:subscription:{subscription_id}"


def api_subscriptions_key(api_id: str) -> str:
    return f"{KEY_PREFIX}:api:{api_id}:subscriptions"
