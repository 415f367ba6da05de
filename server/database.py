import os
from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

SUPPORTED_DB_TYPES = ("sqlite", "postgresql", "mysql")


def get_database_url() -> str:
    """
    Get database URL from environment variables with fallback to SQLite.

    Environment variables:
    - DATABASE_URL: Full database URL (takes precedence)
    - DB_TYPE: 'sqlite', 'postgresql' or 'mysql'
    - DB_HOST: Database host (for PostgreSQL/MySQL)
    - DB_PORT: Database port (for PostgreSQL/MySQL)
    - DB_NAME: Database name
    - DB_USER: Database username (for PostgreSQL/MySQL)
    - DB_PASSWORD: Database password (for PostgreSQL/MySQL)
    """

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        # Heroku-style postgres:// URLs are not accepted by SQLAlchemy
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        # Bare mysql:// defaults to the MySQLdb driver; the portal ships pymysql
        elif database_url.startswith("mysql://"):
            database_url = database_url.replace("mysql://", "mysql+pymysql://", 1)
        return database_url

    db_type = os.getenv("DB_TYPE", "sqlite").lower()

    if db_type == "sqlite":
        db_name = os.getenv("DB_NAME", "partner_portal.db")
        return f"sqlite:///./{db_name}"

    if db_type not in SUPPORTED_DB_TYPES:
        raise ValueError(f"Unsupported database type: {db_type}")

    scheme = "postgresql" if db_type == "postgresql" else "mysql+pymysql"
    default_port = "5432" if db_type == "postgresql" else "3306"
    db_host = os.getenv("DB_HOST", "localhost")
    db_port = os.getenv("DB_PORT", default_port)
    db_name = os.getenv("DB_NAME", "partner_portal")
    db_user = os.getenv("DB_USER", "postgres" if db_type == "postgresql" else "root")
    db_password = os.getenv("DB_PASSWORD", "")

    if db_password:
        return f"{scheme}://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
    return f"{scheme}://{db_user}@{db_host}:{db_port}/{db_name}"


def _database_type(database_url: str) -> str:
    if database_url.startswith("sqlite:"):
        return "sqlite"
    if database_url.startswith("mysql"):
        return "mysql"
    return "postgresql"


def create_database_engine() -> Engine:
    """
    Create database engine with appropriate configuration for the database type.
    """
    database_url = get_database_url()

    engine_args = {
        "echo": os.getenv("DB_ECHO", "false").lower() == "true",
    }

    if _database_type(database_url) == "sqlite":
        engine_args.update({
            # StaticPool keeps in-memory databases alive across sessions
            "poolclass": StaticPool,
            "connect_args": {
                "check_same_thread": False,
                "timeout": 20,
            },
        })
    else:
        engine_args.update({
            "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "20")),
            "pool_pre_ping": True,
            "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "3600")),
            "connect_args": {
                "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
            },
        })

    return create_engine(database_url, **engine_args)


def get_database_info() -> dict:
    """
    Get information about the current database configuration.
    Useful for debugging and health checks.
    """
    database_url = get_database_url()

    info = {
        "database_url": database_url,
        "database_type": _database_type(database_url),
        "echo_enabled": os.getenv("DB_ECHO", "false").lower() == "true",
    }

    if info["database_type"] != "sqlite":
        info.update({
            "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "20")),
            "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "3600")),
        })

    # Mask password in URL
    if "://" in database_url:
        scheme, rest = database_url.split("://", 1)
        if "@" in rest:
            user_pass, host_db = rest.split("@", 1)
            if ":" in user_pass:
                user, _ = user_pass.split(":", 1)
                info["database_url"] = f"{scheme}://{user}:****@{host_db}"

    return info


# Create the global engine instance
DATABASE_URL = get_database_url()
engine = create_database_engine()


def create_db_and_tables():
    """
    Create database tables from SQLModel metadata.
    This is used for initial setup and development.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """FastAPI dependency yielding one session per request"""
    with Session(engine) as session:
        yield session


def get_engine() -> Engine:
    """
    Get the database engine instance.
    This is useful for dependency injection and testing.
    """
    return engine


def close_engine():
    """
    Close the database engine and all connections.
    Useful for cleanup in tests and application shutdown.
    """
    engine.dispose()
