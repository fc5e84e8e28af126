import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _str_to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "y", "on")


@dataclass
class Settings:
    cache_default_ttl_seconds: float
    session_duration_seconds: float
    session_expiry_check_interval_seconds: float
    profile_collection: str
    session_marker_backend: str
    session_marker_prefix: str
    google_project_id: str | None
    firebase_admin_json: str | None
    redis_host: str | None
    redis_port: int
    redis_password: str | None
    redis_tls: bool
    redis_db: int
    redis_tls_verify: bool
    use_local_redis: bool
    log_level: str


def get_settings() -> Settings:
    use_local = _str_to_bool(os.getenv("USE_LOCAL_REDIS"))

    # Lire bruts pour pouvoir surcharger proprement
    raw_host = os.getenv("REDIS_HOST")
    raw_port = os.getenv("REDIS_PORT")
    raw_pwd = os.getenv("REDIS_PASSWORD")
    raw_tls = os.getenv("REDIS_TLS")
    raw_db = os.getenv("REDIS_DB")
    raw_tls_verify = os.getenv("REDIS_TLS_VERIFY", "true")

    if use_local:
        # FORÇAGE LOCAL, on ignore les valeurs cloud
        host = "127.0.0.1"
        port = 6379
        password = None
        tls = False
        db = int(raw_db or "0")
        tls_verify = False
    else:
        host = raw_host
        port = int(raw_port or "6379")
        password = raw_pwd
        tls = _str_to_bool(raw_tls)
        db = int(raw_db or "0")
        tls_verify = _str_to_bool(raw_tls_verify)

    return Settings(
        cache_default_ttl_seconds=float(os.getenv("CACHE_DEFAULT_TTL_SECONDS", "120")),
        session_duration_seconds=float(os.getenv("SESSION_DURATION_SECONDS", str(8 * 60 * 60))),
        session_expiry_check_interval_seconds=float(
            os.getenv("SESSION_EXPIRY_CHECK_INTERVAL_SECONDS", "60")
        ),
        profile_collection=os.getenv("PROFILE_COLLECTION", "pegawai"),
        session_marker_backend=os.getenv("SESSION_MARKER_BACKEND", "memory").lower(),
        session_marker_prefix=os.getenv("SESSION_MARKER_PREFIX", "fineer"),
        google_project_id=os.getenv("GOOGLE_PROJECT_ID"),
        firebase_admin_json=os.getenv("FIREBASE_ADMIN_JSON"),
        redis_host=host,
        redis_port=port,
        redis_password=password,
        redis_tls=tls,
        redis_db=db,
        redis_tls_verify=tls_verify,
        use_local_redis=use_local,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
