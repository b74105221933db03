from .recipes import RecipesRepository
from .recipe_queries import RecipeQueriesRepository
from .search_index import SearchIndexRepository
from .search_history import SearchHistoryRepository

__all__ = [
    "RecipesRepository",
    "RecipeQueriesRepository",
    "SearchIndexRepository",
    "SearchHistoryRepository",
]
