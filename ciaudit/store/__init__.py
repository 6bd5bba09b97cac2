from .local_store import PULLS, RELEASES, TAGS, Collection, LocalStore

__all__ = ["PULLS", "RELEASES", "TAGS", "Collection", "LocalStore"]
