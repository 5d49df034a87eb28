"""
Authorization policy.

Every ownership / role decision in the services goes through ``can`` (or
``authorize``, which raises), so endpoints cannot drift apart on who may
do what.  ``visible_articles_clause`` is the SQL form of the article
VIEW rule, used by listings.
"""
import enum
from typing import Optional, Union

from sqlalchemy import or_, true

from blogpress.exceptions import ForbiddenError
from blogpress.models import Article, ArticleStatus, Comment, User, UserRole


class Action(str, enum.Enum):
    VIEW = "view"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"
    VIEW_EMAIL = "view_email"


Resource = Union[Article, Comment, User]


def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.role == UserRole.ADMIN


def _is_owner(user: Optional[User], owner_id: int) -> bool:
    return user is not None and user.id == owner_id


def can(caller: Optional[User], resource: Resource, action: Action) -> bool:
    """Return True when *caller* (None for anonymous) may apply *action* to *resource*."""
    if isinstance(resource, Article):
        if action == Action.VIEW:
            return (
                resource.status == ArticleStatus.PUBLISHED
                or _is_owner(caller, resource.author_id)
                or is_admin(caller)
            )
        if action in (Action.UPDATE, Action.DELETE):
            return _is_owner(caller, resource.author_id) or is_admin(caller)
        if action == Action.PUBLISH:
            return is_admin(caller)
        return False

    if isinstance(resource, Comment):
        if action == Action.VIEW:
            return True
        if action in (Action.UPDATE, Action.DELETE):
            return _is_owner(caller, resource.user_id) or is_admin(caller)
        return False

    if isinstance(resource, User):
        if action == Action.VIEW:
            return True
        if action == Action.VIEW_EMAIL:
            return _is_owner(caller, resource.id) or is_admin(caller)
        if action == Action.DELETE:
            return is_admin(caller)
        return False

    return False


def authorize(caller: Optional[User], resource: Resource, action: Action) -> None:
    """Raise ``ForbiddenError`` unless ``can(caller, resource, action)``."""
    if not can(caller, resource, action):
        raise ForbiddenError()


def visible_articles_clause(caller: Optional[User]):
    """
    SQL filter matching the articles *caller* may see: PUBLISHED for
    anonymous callers, PUBLISHED or own for authors, everything for admins.
    """
    if is_admin(caller):
        return true()
    if caller is None:
        return Article.status == ArticleStatus.PUBLISHED
    return or_(Article.status == ArticleStatus.PUBLISHED, Article.author_id == caller.id)
