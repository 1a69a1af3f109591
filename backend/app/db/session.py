"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.settings import settings
from app.logging_config import get_logger

logger = get_logger(__name__)

# Use the database_url property from settings
connection_string = settings.database_url

# Create engine
engine = create_engine(
    connection_string,
    echo=False,  # SQL logging is routed through the sqlalchemy.engine logger
    pool_pre_ping=True,  # Verify connections before using
    pool_recycle=3600,  # Recycle connections after 1 hour
)

# Log connection info (without password)
logger.info(f"Database connection: {engine.url.render_as_string(hide_password=True)}")

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency for getting database session

    Usage in FastAPI endpoints:
        @router.get("/proposals")
        def list_proposals(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
