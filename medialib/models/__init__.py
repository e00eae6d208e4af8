from .media import Genre, Media, Anime, Manga
from .castings import Casting
from .library import LibraryEntry
from .posts import Post, Comment, CommentLike
from .feeds import FeedFollow

__all__ = [
    "Genre",
    "Media",
    "Anime",
    "Manga",
    "Casting",
    "LibraryEntry",
    "Post",
    "Comment",
    "CommentLike",
    "FeedFollow",
]
