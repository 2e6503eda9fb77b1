from datetime import date

import pytest

from forge.pipelines.normalization import (
    achievement_key,
    company_key,
    month_index,
    normalize_text,
    parse_partial_date,
)


def test_company_key_ignores_case_and_whitespace():
    assert company_key("  Acme   Corp\t") == "acmecorp"
    assert company_key(None) == ""


def test_achievement_key_trims_and_lowercases():
    assert achievement_key("  Led the Team ") == "led the team"


def test_month_index_equal_within_a_month():
    assert month_index(date(2021, 3, 1)) == month_index(date(2021, 3, 31))
    assert month_index(date(2021, 12, 1)) + 1 == month_index(date(2022, 1, 1))


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2021-03", date(2021, 3, 1)),
        ("2021-03-15", date(2021, 3, 15)),
        ("03/2021", date(2021, 3, 1)),
        ("Mar 2021", date(2021, 3, 1)),
        ("September 2019", date(2019, 9, 1)),
        ("2018", date(2018, 1, 1)),
        ("Present", None),
        ("", None),
        (None, None),
        (date(2020, 5, 5), date(2020, 5, 5)),
    ],
)
def test_parse_partial_date(value, expected):
    assert parse_partial_date(value) == expected


def test_parse_partial_date_rejects_garbage():
    with pytest.raises(ValueError):
        parse_partial_date("sometime last year")


def test_normalize_text_cleans_bullets_and_html():
    text = "<p>Summary</p>\n•   Built   APIs – fast\n\n\n“quoted”"
    assert normalize_text(text) == 'Summary\n- Built APIs - fast\n"quoted"'


def test_normalize_text_empty():
    assert normalize_text("   \n ") == ""
