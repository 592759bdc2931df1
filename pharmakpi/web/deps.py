"""FastAPI dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from pharmakpi.db.session import get_db

# Type aliases for cleaner endpoints
DBSession = Annotated[Session, Depends(get_db)]

__all__ = ["DBSession", "get_db"]
