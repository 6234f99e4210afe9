"""
Unit tests for ContentModerator.
"""
import pytest

from chat_service.services import ContentModerator


@pytest.mark.parametrize("text", ["buy SPAM now", "这是垃圾", "免费广告", "违法内容", "Spam"])
def test_blocked_terms_are_rejected(moderator, text):
    result = moderator.check(text)

    assert result.safe is False
    assert result.reason == ContentModerator.REJECTION_REASON


@pytest.mark.parametrize("text", ["你好", "hello there", "spa m"])
def test_clean_text_is_safe(moderator, text):
    result = moderator.check(text)

    assert result.safe is True
    assert result.reason is None


def test_custom_block_list_is_case_insensitive():
    moderator = ContentModerator(["BadWord"])

    assert moderator.check("this has a badword inside").safe is False
    assert moderator.check("spam is fine here").safe is True


def test_empty_terms_are_ignored():
    moderator = ContentModerator(["", "x"])

    assert moderator.blocked_terms == ("x",)
    assert moderator.check("hello").safe is True
