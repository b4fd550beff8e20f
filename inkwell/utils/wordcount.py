"""Word counting for mixed CJK / Latin-script text."""
import re

# CJK Unified Ideographs, basic block
CJK_PATTERN = re.compile(r"[\u4e00-\u9fa5]")


def count_words(text: str) -> int:
    """
    Count words the way writers of mixed-script manuscripts expect.

    Every CJK ideograph counts as one word; the remaining text is split on
    whitespace and each non-empty token counts as one word.

    Args:
        text: Chapter text

    Returns:
        Word count (0 for empty text)
    """
    if not text:
        return 0

    ideographs = len(CJK_PATTERN.findall(text))
    remainder = CJK_PATTERN.sub('', text)
    return ideographs + len(remainder.split())
