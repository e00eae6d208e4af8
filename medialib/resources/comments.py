from medialib.models import Comment

from .base import BaseResource


class CommentResource(BaseResource):
    model = Comment
    caching = True

    attributes = (
        "content",
        "content_formatted",
        "blocked",
        "deleted_at",
        "likes_count",
        "replies_count",
        "edited_at",
    )

    has_one = ("user", "post", "parent")
    has_many = ("likes", "replies")

    filters = ("post_id", "parent_id")
