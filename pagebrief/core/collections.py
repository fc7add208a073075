class CollectionNames:
    """MongoDB collection names used by the repositories."""

    PAGE_CACHE = "page_cache"
