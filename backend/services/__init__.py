from importlib import import_module

__all__ = [
    "ConflictFeedService",
    "build_conflict_feed_service",
    "FetchCoordinator",
    "Normalizer",
]

_LAZY_EXPORTS = {
    "ConflictFeedService": ("services.conflict_feed", "ConflictFeedService"),
    "build_conflict_feed_service": ("services.conflict_feed", "build_conflict_feed_service"),
    "FetchCoordinator": ("services.conflict_feed", "FetchCoordinator"),
    "Normalizer": ("services.conflict_feed", "Normalizer"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
