"""
Module: registry_kernel.selectors.base
Responsibility: Common base for read-only query classes.
Architecture position: Kernel > Selectors.  Reads models/, returns domain
    DTOs.  Never imports services/.

Selectors only run SELECTs on the session they are given.  They do not
add, flush or commit, and what they return is frozen DTOs or plain text,
never live ORM rows.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from registry_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    def __init__(self, session: Session):
        self.session = session
