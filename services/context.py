"""Per-request execution context handed to every portal operation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from flask import current_app, g
from flask_login import current_user
from sqlalchemy.orm import Session

from extensions import db
from utils.sentiment import SentimentClassifier


@dataclass(frozen=True)
class Principal:
    """An authenticated actor; guest sessions carry ``is_anonymous=True``."""

    uid: str
    is_anonymous: bool = False

    @classmethod
    def from_user(cls, user) -> Optional["Principal"]:
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return cls(uid=str(user.id), is_anonymous=bool(getattr(user, "is_guest", False)))


@dataclass
class PortalContext:
    session: Session
    classifier: SentimentClassifier
    logger: logging.Logger
    config: Mapping[str, Any]
    # Role determinations live exactly as long as this context.
    role_cache: Dict[str, str] = field(default_factory=dict)

    def setting(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)


def current_context() -> PortalContext:
    ctx = g.get("portal_context")
    if ctx is None:
        ctx = PortalContext(
            session=db.session,
            classifier=current_app.extensions["sentiment_classifier"],
            logger=current_app.logger,
            config=current_app.config,
        )
        g.portal_context = ctx
    return ctx


def current_principal() -> Optional[Principal]:
    return Principal.from_user(current_user)
