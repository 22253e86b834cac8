from crudkit.models.book import Book

__all__ = ["Book"]
