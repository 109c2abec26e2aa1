"""Tests for the recursive character text splitter."""

import pytest

from shared.helper.HelperTextSplitter import HelperTextSplitter


def test_prefers_paragraph_breaks():
    splitter = HelperTextSplitter(chunk_size=10, chunk_overlap=0)
    assert splitter.split_text("para one\n\npara two") == ["para one", "para two"]


def test_merges_words_up_to_chunk_size():
    splitter = HelperTextSplitter(chunk_size=11, chunk_overlap=0)
    assert splitter.split_text("alpha beta gamma delta") == ["alpha beta", "gamma delta"]


def test_overlap_carries_trailing_words():
    splitter = HelperTextSplitter(chunk_size=11, chunk_overlap=5)
    assert splitter.split_text("alpha beta gamma delta") == ["alpha beta", "beta gamma", "gamma delta"]


def test_falls_back_to_characters_without_separators():
    splitter = HelperTextSplitter(chunk_size=10, chunk_overlap=2)
    assert splitter.split_text("AAAAABBBBBCCCCC") == ["AAAAABBBBB", "BBCCCCC"]


def test_long_words_are_split_further():
    splitter = HelperTextSplitter(chunk_size=5, chunk_overlap=0)
    chunks = splitter.split_text("ab abcdefghij cd")
    assert all(len(chunk) <= 5 for chunk in chunks)
    assert "".join(chunks).replace(" ", "") == "ababcdefghijcd"


def test_no_chunk_exceeds_max_size():
    text = ("Lorem ipsum dolor sit amet, consectetur adipiscing elit.\n" * 20).strip()
    splitter = HelperTextSplitter(chunk_size=50, chunk_overlap=10)
    chunks = splitter.split_text(text)
    assert len(chunks) > 1
    assert all(0 < len(chunk) <= 50 for chunk in chunks)


@pytest.mark.parametrize("text", ["", "   ", "\n\n\n"])
def test_blank_text_has_no_chunks(text):
    assert HelperTextSplitter(chunk_size=10, chunk_overlap=2).split_text(text) == []


def test_short_text_is_one_chunk():
    assert HelperTextSplitter(chunk_size=100, chunk_overlap=10).split_text("  hello world  ") == ["hello world"]


@pytest.mark.parametrize("size,overlap", [(0, 0), (-5, 0), (10, 10), (10, 20), (10, -1)])
def test_invalid_configuration(size, overlap):
    with pytest.raises(ValueError):
        HelperTextSplitter(chunk_size=size, chunk_overlap=overlap)
