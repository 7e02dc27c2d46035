"""
Post CRUD with author-based access control.

Any caller may read posts; only a post's author may update or delete it.
Lookups come first, so a missing post yields ``NotFound`` before any
ownership check runs.
"""

import logging
from typing import Any, Dict, List

from blog_api.errors import Forbidden, NotFound
from blog_api.schemas import PostCreate, PostUpdate, validate_payload
from blog_api.store import RecordStore

logger = logging.getLogger(__name__)

WITH_AUTHOR = ("author",)
NEWEST_FIRST = (("created_at", "desc"), ("id", "desc"))


class PostService:
    def __init__(self, posts: RecordStore) -> None:
        self.posts = posts

    # PUBLIC_INTERFACE
    def create(self, data: Any, author_id: int) -> Dict[str, Any]:
        """Persist a post owned by ``author_id``."""
        payload = validate_payload(PostCreate, data)
        post = self.posts.create({"title": payload.title, "content": payload.content, "author_id": author_id})
        logger.info("User %s created post %s", author_id, post["id"])
        return self.find_one(post["id"])

    # PUBLIC_INTERFACE
    def find_all(self) -> List[Dict[str, Any]]:
        """List every post, newest first, with its author."""
        return self.posts.find(include=WITH_AUTHOR, order=NEWEST_FIRST)

    # PUBLIC_INTERFACE
    def find_by_author(self, author_id: int) -> List[Dict[str, Any]]:
        """List one author's posts, newest first."""
        return self.posts.find({"author_id": author_id}, include=WITH_AUTHOR, order=NEWEST_FIRST)

    # PUBLIC_INTERFACE
    def find_one(self, post_id: int) -> Dict[str, Any]:
        """Fetch a post with its author or raise ``NotFound``."""
        post = self.posts.find_one({"id": post_id}, include=WITH_AUTHOR)
        if post is None:
            raise NotFound(f"Post {post_id} not found")
        return post

    def _owned(self, post_id: int, caller_id: int) -> Dict[str, Any]:
        post = self.posts.find_one({"id": post_id})
        if post is None:
            raise NotFound(f"Post {post_id} not found")
        if post["author_id"] != caller_id:
            logger.warning("User %s denied access to post %s owned by %s", caller_id, post_id, post["author_id"])
            raise Forbidden("You can only modify your own posts")
        return post

    # PUBLIC_INTERFACE
    def update(self, post_id: int, patch: Any, caller_id: int) -> Dict[str, Any]:
        """Apply the supplied fields of ``patch`` to a post the caller owns."""
        payload = validate_payload(PostUpdate, patch)
        self._owned(post_id, caller_id)

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if changes:
            self.posts.update(post_id, changes)
            logger.info("User %s updated post %s (%s)", caller_id, post_id, ", ".join(sorted(changes)))
        return self.find_one(post_id)

    # PUBLIC_INTERFACE
    def remove(self, post_id: int, caller_id: int) -> None:
        """Delete a post the caller owns."""
        self._owned(post_id, caller_id)
        self.posts.delete(post_id)
        logger.info("User %s deleted post %s", caller_id, post_id)
