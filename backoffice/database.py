# backoffice/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from dotenv import load_dotenv

from backoffice.config import settings

load_dotenv()

# 1. Database URL from settings (environment or .env), SQLite by default
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# 2. Hosted Postgres URLs use the old postgres:// scheme, SQLAlchemy needs postgresql://
if SQLALCHEMY_DATABASE_URL and SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)


def connect_args_for(url: str) -> dict:
    # SQLite connections are shared across the request thread pool
    if "sqlite" in url:
        return {"check_same_thread": False, "timeout": 30}
    return {}


engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args=connect_args_for(SQLALCHEMY_DATABASE_URL)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Register every model on Base.metadata before creating tables
    import backoffice.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
