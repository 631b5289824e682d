"""
Tests de l'enveloppe de pagination des listes.
"""

from app.api.v1.dependencies import PaginationParams


class TestPaginationParams:

    def test_offset(self):
        assert PaginationParams(page=3, size=20).offset == 40

    def test_envelope(self):
        body = PaginationParams(page=2, size=20).envelope(["a", "b"], 42)

        assert body == {"items": ["a", "b"], "total": 42, "page": 2, "size": 20, "pages": 3}

    def test_empty_list_has_no_pages(self):
        assert PaginationParams().envelope([], 0)["pages"] == 0
