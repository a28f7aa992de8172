"""
SQLAlchemy base and database connection
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from rentaltracker.config import DATABASE_URL, DATA_DIR

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    connect_args = {"check_same_thread": False}  # Streamlit reruns on other threads

# Create engine
engine = create_engine(DATABASE_URL, connect_args=connect_args)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base for all models
Base = declarative_base()


def init_db():
    """Create all tables"""
    Base.metadata.create_all(bind=engine)
