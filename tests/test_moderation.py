import pytest

from sellfast.moderation import contains_phone_number, find_phone_number


@pytest.mark.parametrize(
    "text",
    [
        "5551234567",
        "call 555-123-4567 tonight",
        "555.123.4567",
        "+1 555 123 4567",
        "reach me at (555) 123 4567",
        "0612 345 678",
    ],
)
def test_phone_numbers_detected(text):
    assert contains_phone_number(text)


@pytest.mark.parametrize(
    "text",
    [
        "",
        None,
        "Is the phone still available?",
        "Meet me at the station around noon",
        "price is fine, see you tomorrow",
    ],
)
def test_clean_text_passes(text):
    assert not contains_phone_number(text)


def test_long_digit_runs_also_match():
    # order numbers and prices trip the filter too
    assert contains_phone_number("order 123456")


def test_find_returns_fragment():
    assert find_phone_number("number: 5551234567!") == "5551234567"


@pytest.mark.parametrize(
    "text",
    [
        "call 1\u00a02\u00a03\u00a04",
        "+33\u20036\u200312\u200334",
        "0612\u3000345\u3000678",
        "0612\u202f345\u202f678",
    ],
)
def test_unicode_spaces_count_as_separators(text):
    assert contains_phone_number(text)


def test_non_ascii_digits_are_not_phone_digits():
    # Arabic-Indic digits fall outside \d under the ASCII flag
    assert not contains_phone_number("\u0665\u0665\u0665\u0661\u0662\u0663\u0664\u0665\u0666\u0667")
