"""FolderRouter tests: ordered keyword table, category fallback, lazy creation."""
import pytest

from grylin.services.folder_router import (
    DEFAULT_FOLDER,
    find_or_create_folder,
    resolve_folder_name,
)


class TestResolveFolderName:
    def test_keyword_beats_category(self):
        assert resolve_folder_name("Electric Bill", "Finance") == "Utility Bills"

    def test_category_fallback(self):
        assert resolve_folder_name("Quarterly summary", "Finance") == "Finance Documents"

    def test_case_insensitive_title(self):
        assert resolve_folder_name("DRIVING LICENCE - Ravi Kumar", "Other") == "Driving Licence"

    def test_declaration_order_wins(self):
        # "credit card" is checked before "bank statement"
        assert resolve_folder_name("HDFC Credit Card Statement", "Finance") == "Credit Cards"
        assert resolve_folder_name("Bank Statement - March", "Finance") == "Bank Statements"

    def test_unknown_category(self):
        assert resolve_folder_name("Something", "Misc") == DEFAULT_FOLDER

    def test_empty_title(self):
        assert resolve_folder_name("", "Health") == "Medical Records"


class TestFindOrCreateFolder:
    @pytest.mark.asyncio
    async def test_creates_when_missing(self, storage, user_id):
        folder = await find_or_create_folder(storage, user_id, "Passport - A. Rao", "Other")
        assert folder.name == "Passport"
        assert [f.name for f in await storage.list_folders(user_id)] == ["Passport"]

    @pytest.mark.asyncio
    async def test_reuses_existing_case_insensitively(self, storage, user_id):
        existing = await storage.create_folder(user_id, "utility bills")
        folder = await find_or_create_folder(storage, user_id, "Water Bill", "Finance")
        assert folder.id == existing.id
        assert len(await storage.list_folders(user_id)) == 1
