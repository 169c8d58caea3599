"""
Database engines.

One SQLAlchemy engine is created per module database configuration and shared
by every model of that module.
"""

from __future__ import annotations

from typing import Any, Dict, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url

from plinth.core.logging_config import get_logger

logger = get_logger(__name__)


def build_engine(url: Union[str, URL], **kwargs: Any) -> Engine:
    """Create an engine with connection health checks enabled.

    Args:
        url: Database URL
        **kwargs: Extra ``create_engine`` arguments
    """
    options: Dict[str, Any] = {"pool_pre_ping": True}
    options.update(kwargs)
    engine = create_engine(url, **options)
    logger.info(f"Database engine created: {make_url(url).render_as_string(hide_password=True)}")
    return engine
