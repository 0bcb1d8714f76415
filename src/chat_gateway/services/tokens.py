"""Грубая оценка количества токенов (эвристика, не токенизатор)."""


def rough_token_count(text: str) -> int:
    """Среднее между оценкой «по символам» (4 символа на токен) и «по словам» (4/3 токена на слово)."""
    if not text:
        return 0
    by_chars = len(text) / 4.0
    by_words = len(text.split()) * 4.0 / 3
    return max(1, round((by_chars + by_words) / 2.0))
