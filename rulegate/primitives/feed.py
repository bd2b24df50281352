"""
Feed primitive: authored posts.

Content authoring runs under the Notify discipline: the post is written
first and the feed's rule module then sees it in place (and may still
veto, which removes it again). Deletion runs under Gate so the module can
inspect the post before it disappears.
"""

from __future__ import annotations

import logging
from typing import Any

from rulegate.exceptions import AccessDenied, InvalidOperation
from rulegate.events import EventType
from rulegate.primitives.base import Primitive
from rulegate.rules.base import Discipline
from rulegate.rules.dispatcher import ActionSpec
from rulegate.types import Permissions, Principal

logger = logging.getLogger(__name__)

CREATE_POST = ActionSpec("create_post", Discipline.NOTIFY)
EDIT_POST = ActionSpec("edit_post", Discipline.NOTIFY)
DELETE_POST = ActionSpec("delete_post", Discipline.GATE)


class Feed(Primitive):
    """
    A feed of posts.

    Example:
        >>> feed = core.create_feed(rule_module=MembershipGatedRule(group))
        >>> post_id = feed.create_post("0xalice", "ipfs://hello")
        >>> feed.get_post(post_id)["author"]
        '0xalice'
    """

    kind = "feed"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._posts = self._state.namespace(f"{self.id}.posts")
        self._author_post_counts = self._state.namespace(f"{self.id}.author_post_counts")
        self._data.setdefault("post_count", 0)

    def create_post(self, author: Principal, content_uri: str, data: bytes = b"") -> str:
        """
        Publish a post.

        Args:
            author: The acting principal; posts are always their own.
            content_uri: Where the content lives.
            data: Opaque payload for the rule module.

        Returns:
            The new post id.

        Raises:
            RuleRejected: The feed's rule module vetoed the post.
        """
        post_id = self._ids.next_id(f"{self.id}.post")

        def mutation() -> str:
            self._posts[post_id] = {
                "id": post_id,
                "author": author,
                "content_uri": content_uri,
                "edits": 0,
            }
            self._data["post_count"] += 1
            self._author_post_counts[author] = self._author_post_counts.get(author, 0) + 1
            self._emit(
                EventType.POST_CREATED,
                {"post_id": post_id, "author": author, "content_uri": content_uri},
            )
            return post_id

        return self.dispatcher.dispatch(
            CREATE_POST,
            author,
            mutation,
            modules=[self.rule_module],
            entity=post_id,
            params={"content_uri": content_uri},
            data=data,
        )

    def edit_post(
        self,
        caller: Principal,
        post_id: str,
        content_uri: str,
        data: bytes = b"",
    ) -> None:
        """
        Replace a post's content. Only the author may edit.

        Raises:
            InvalidOperation: Unknown post.
            AccessDenied: Caller is not the author.
            RuleRejected: The feed's rule module vetoed the edit.
        """
        with self._state.atomic():
            previous_uri = self._check_editable(caller, post_id)["content_uri"]

            def mutation() -> None:
                stored = self._check_editable(caller, post_id)
                self._posts[post_id] = {
                    **stored,
                    "content_uri": content_uri,
                    "edits": stored["edits"] + 1,
                }
                self._emit(
                    EventType.POST_EDITED,
                    {"post_id": post_id, "author": caller, "content_uri": content_uri},
                )

            self.dispatcher.dispatch(
                EDIT_POST,
                caller,
                mutation,
                modules=[self.rule_module],
                entity=post_id,
                params={"content_uri": content_uri, "previous_content_uri": previous_uri},
                data=data,
            )

    def delete_post(self, caller: Principal, post_id: str, data: bytes = b"") -> None:
        """
        Delete a post. The author, or anyone with DELETE_POST, may delete.

        Raises:
            InvalidOperation: Unknown post.
            AccessDenied: Caller is neither the author nor allowed to moderate.
            RuleRejected: The feed's rule module vetoed the deletion.
        """
        with self._state.atomic():
            author = self._check_deletable(caller, post_id)["author"]

            def mutation() -> None:
                self._check_deletable(caller, post_id)
                del self._posts[post_id]
                self._data["post_count"] -= 1
                remaining = self._author_post_counts[author] - 1
                if remaining:
                    self._author_post_counts[author] = remaining
                else:
                    del self._author_post_counts[author]
                self._emit(EventType.POST_DELETED, {"post_id": post_id, "deleted_by": caller})

            self.dispatcher.dispatch(
                DELETE_POST,
                caller,
                mutation,
                modules=[self.rule_module],
                entity=post_id,
                params={"author": author},
                data=data,
            )

    def get_post(self, post_id: str) -> dict[str, Any] | None:
        """Return a copy of a post, or None."""
        post = self._posts.get(post_id)
        return dict(post) if post is not None else None

    def post_exists(self, post_id: str) -> bool:
        return post_id in self._posts

    @property
    def post_count(self) -> int:
        return self._data["post_count"]

    def post_count_of(self, author: Principal) -> int:
        return self._author_post_counts.get(author, 0)

    def _check_editable(self, caller: Principal, post_id: str) -> dict[str, Any]:
        post = self._require_post(post_id, "edit_post")
        if post["author"] != caller:
            raise AccessDenied(caller, self.id, reason="only the author can edit a post")
        return post

    def _check_deletable(self, caller: Principal, post_id: str) -> dict[str, Any]:
        post = self._require_post(post_id, "delete_post")
        if post["author"] != caller:
            self.access.require_access(caller, self.id, Permissions.DELETE_POST)
        return post

    def _require_post(self, post_id: str, operation: str) -> dict[str, Any]:
        post = self._posts.get(post_id)
        if post is None:
            raise InvalidOperation(operation, "post does not exist", {"post_id": post_id})
        return post
