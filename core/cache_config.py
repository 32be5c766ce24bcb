"""Cache configuration and key layout for the ordering backend."""

import os

# Cache timeout configurations (in seconds)
CACHE_TIMEOUTS = {
    'DEFAULT': 300,             # 5 minutes
    'MENU': 3600,               # 1 hour
    'CART': 86400,              # 24 hours of inactivity
    'CART_IDEMPOTENCY': 300,    # 5 minutes
    'CART_CALCULATION': 300,    # 5 minutes
}

# Key templates; every menu key for a restaurant shares the MENU_NAMESPACE prefix
CACHE_PREFIXES = {
    'MENU_NAMESPACE': 'menu:{tenant}:{restaurant}:',
    # One cart per user and tenant; the stored restaurant_id pins it to a restaurant
    'CART': 'cart:{tenant}:{user}',
    'CART_IDEMPOTENCY': 'cart:idempotency:{tenant}:{user}:{key}',
    'CART_CALCULATION': 'cart:calculation:{tenant}:{user}:{restaurant}:{contents}:{coupon}',
}

INVALIDATION_PATTERNS = {
    'MENU': 'menu:{tenant}:{restaurant}:*',
    'CART_CALCULATION': 'cart:calculation:{tenant}:*:{restaurant}:*',
}


def menu_key(tenant_id, restaurant_id, *parts) -> str:
    prefix = CACHE_PREFIXES['MENU_NAMESPACE'].format(tenant=tenant_id, restaurant=restaurant_id)
    return prefix + ":".join(str(part) for part in parts)


def cart_key(tenant_id, user_id) -> str:
    return CACHE_PREFIXES['CART'].format(tenant=tenant_id, user=user_id)


def cart_idempotency_key(tenant_id, user_id, key) -> str:
    return CACHE_PREFIXES['CART_IDEMPOTENCY'].format(tenant=tenant_id, user=user_id, key=key)


def cart_calculation_key(tenant_id, user_id, restaurant_id, contents_hash, coupon_code=None) -> str:
    return CACHE_PREFIXES['CART_CALCULATION'].format(
        tenant=tenant_id,
        user=user_id,
        restaurant=restaurant_id,
        contents=contents_hash,
        coupon=coupon_code or 'no-coupon',
    )


def get_cache_config():
    """Get cache configuration based on environment."""
    redis_url = os.getenv('REDIS_URL', '').strip()
    environment = os.getenv('ENVIRONMENT', 'development').lower()

    if redis_url and environment in ('production', 'staging'):
        return {
            'default': {
                'BACKEND': 'django_redis.cache.RedisCache',
                'LOCATION': redis_url,
                'OPTIONS': {
                    'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                    'SOCKET_CONNECT_TIMEOUT': float(os.getenv('REDIS_CONNECT_TIMEOUT', '2')),
                    'SOCKET_TIMEOUT': float(os.getenv('REDIS_SOCKET_TIMEOUT', '2')),
                    'CONNECTION_POOL_KWARGS': {
                        'max_connections': int(os.getenv('REDIS_MAX_CONNECTIONS', '50')),
                        'retry_on_timeout': True,
                    },
                    'SERIALIZER': 'django_redis.serializers.json.JSONSerializer',
                },
                'KEY_PREFIX': os.getenv('CACHE_KEY_PREFIX', 'ordering'),
                'TIMEOUT': CACHE_TIMEOUTS['DEFAULT'],
            }
        }
    return {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'ordering-default',
            'TIMEOUT': CACHE_TIMEOUTS['DEFAULT'],
        }
    }
