from .base import BaseResource, ResourceError, resource_type
from .comments import CommentResource

__all__ = [
    "BaseResource",
    "ResourceError",
    "resource_type",
    "CommentResource",
]
