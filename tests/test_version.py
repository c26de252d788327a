import pytest

from clabtools.version import SLUG, docs_link_from_ver, is_newer, version_banner


def test_docs_link_for_minor_release():
    assert docs_link_from_ver("0.15.0") == "0.15/"


def test_docs_link_for_patch_release():
    assert docs_link_from_ver("0.15.1") == "0.15/#0151"


def test_docs_link_pads_missing_segments():
    assert docs_link_from_ver("1.2") == docs_link_from_ver("1.2.0")


def test_docs_link_invalid_version():
    with pytest.raises(ValueError):
        docs_link_from_ver("not-a-version")


def test_banner_contains_fields():
    text = version_banner("0.15.1", "abc123", "today")
    assert text.startswith(SLUG)
    assert "    version: 0.15.1\n" in text
    assert "     commit: abc123\n" in text
    assert "       date: today\n" in text
    assert text.rstrip().endswith(docs_link_from_ver("0.15.1"))


@pytest.mark.parametrize(
    "latest,current,expected",
    [
        ("0.16.0", "0.15.1", True),
        ("0.15.1", "0.16.0", False),
        ("0.15.1", "0.15.1", False),
        ("garbage", "0.15.1", False),
    ],
)
def test_is_newer(latest, current, expected):
    assert is_newer(latest, current) is expected