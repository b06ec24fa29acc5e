from .acled import ACLEDAdapter
from .base import FetchParams, SourceAdapter
from .manual import ManualEventsAdapter
from .news import NewsFeedAdapter
from .social import SocialFeedAdapter

__all__ = [
    "ACLEDAdapter",
    "FetchParams",
    "ManualEventsAdapter",
    "NewsFeedAdapter",
    "SocialFeedAdapter",
    "SourceAdapter",
]
