"""Embedded database engine and session factory"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from warrantyhub.config import settings
from warrantyhub.infrastructure.database.models import Base


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Create the embedded store engine and make sure the table exists"""
    url = database_url or settings.embedded_database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    Base.metadata.create_all(bind=engine)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
