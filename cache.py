import redis

from config import REDIS_URL

FEATURED_PRODUCTS_KEY = "featured_products"

redis_client = redis.Redis.from_url(REDIS_URL, decode_responses=True)


def refresh_token_key(user_id: str) -> str:
    return f"refresh_token:{user_id}"


def get_cache() -> redis.Redis:
    return redis_client
