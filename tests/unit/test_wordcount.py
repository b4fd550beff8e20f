"""Tests for word counting."""

from inkwell.utils.wordcount import count_words


class TestCountWords:
    """Test count_words."""

    def test_empty_text(self):
        assert count_words("") == 0
        assert count_words(None) == 0

    def test_whitespace_only(self):
        assert count_words("   \n\t  ") == 0

    def test_latin_words(self):
        assert count_words("hello world") == 2
        assert count_words("  one\ttwo\nthree  ") == 3

    def test_cjk_ideographs_count_individually(self):
        assert count_words("第一章内容") == 5

    def test_mixed_text(self):
        assert count_words("第一章内容 hello world") == 7

    def test_cjk_glued_to_latin(self):
        """Ideographs are removed before splitting, joining what surrounded them."""
        assert count_words("hello世界world") == 3

    def test_punctuation_is_part_of_tokens(self):
        assert count_words("Hello, world!") == 2

    def test_deterministic(self):
        text = "第一章 The quick brown fox 跳过了 the lazy dog."
        assert count_words(text) == count_words(text)
