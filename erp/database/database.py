from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from erp.core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Crear engine según el dialecto.

    SQLite no acepta pool_size/max_overflow y necesita check_same_thread=False
    porque FastAPI atiende endpoints síncronos en un threadpool.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT
            },
            echo=echo
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=echo
    )


engine = build_engine(settings.database_url, echo=settings.DEBUG)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Genera una sesión de base de datos por request."""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Crear todas las tablas registradas en Base.metadata."""
    # Registrar modelos antes de create_all
    import erp.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
