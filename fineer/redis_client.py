import redis

from .config import Settings, get_settings


def create_redis(settings: Settings | None = None) -> redis.Redis:
    settings = settings or get_settings()

    redis_kwargs = {
        "host": settings.redis_host,
        "port": settings.redis_port,
        "password": settings.redis_password or None,
        "db": settings.redis_db,
        "socket_connect_timeout": 5,
        "health_check_interval": 30,
        "decode_responses": True,
    }

    if settings.redis_tls:
        redis_kwargs["ssl"] = True
        # Désactive la vérification TLS si demandé (utile pour tests hors VPC)
        if not settings.redis_tls_verify:
            redis_kwargs["ssl_cert_reqs"] = None  # type: ignore[assignment]

    return redis.Redis(**redis_kwargs)
