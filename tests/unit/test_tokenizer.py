from knowledge_retrieval.hybrid.tokenizer import split_words, tokenize


def test_tokenize_strips_punctuation_and_short_tokens():
    assert tokenize("AI-based, health-care: systems!!!") == ["based", "health", "care", "systems"]


def test_tokenize_lowercases_and_keeps_duplicates():
    assert tokenize("Neural NEURAL neural") == ["neural", "neural", "neural"]


def test_tokenize_keeps_unicode_letters():
    assert tokenize("Café niño déjà") == ["café", "niño", "déjà"]


def test_tokenize_empty_and_short_text():
    assert tokenize("") == []
    assert tokenize("a an of to") == []


def test_split_words_uses_whitespace_only():
    assert split_words("  one,\ttwo\nthree  ") == ["one,", "two", "three"]
    assert split_words("") == []
