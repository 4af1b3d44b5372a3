"""Tests for the sentence chunker."""
import pytest

from kbbot.services.chunker import (
    Chunker,
    split_sentences,
    split_text_into_chunks,
    word_tail_overlap,
)


SAMPLE = (
    "alpha beta gamma delta. epsilon zeta eta theta. iota kappa lambda mu."
)


def long_text(sentences: int = 40) -> str:
    return " ".join(f"Sentence number {i} talks about topic {i % 7}." for i in range(sentences))


class TestSplitSentences:
    """Tests for sentence splitting."""

    def test_mixed_terminators(self):
        assert split_sentences("第一句。第二句！Third? Fourth.") == ["第一句", "第二句", "Third", " Fourth"]

    def test_blank_fragments_dropped(self):
        assert split_sentences("One...   . Two!!") == ["One", " Two"]

    def test_empty(self):
        assert split_sentences("") == []


class TestSplitTextIntoChunks:
    """Tests for split_text_into_chunks."""

    def test_empty_input_yields_no_chunks(self):
        assert split_text_into_chunks("") == []
        assert split_text_into_chunks("   ...  ") == []

    def test_short_text_single_chunk(self):
        chunks = split_text_into_chunks("第一句。第二句！第三句？")
        assert chunks == ["第一句。第二句。第三句。"]

    def test_deterministic(self):
        text = long_text()
        assert split_text_into_chunks(text, 120, 30) == split_text_into_chunks(text, 120, 30)

    def test_overflow_closes_chunk_and_carries_tail_words(self):
        # overlap 12 -> 12 // 6 = 2 words carried
        chunks = split_text_into_chunks(SAMPLE, chunk_size=40, overlap=12)

        assert len(chunks) == 3
        assert chunks[0] == "alpha beta gamma delta。"
        assert chunks[1].startswith("gamma delta")
        assert "epsilon zeta eta theta" in chunks[1]
        assert chunks[2].startswith("eta theta")
        assert "iota kappa lambda mu" in chunks[2]

    def test_zero_overlap_carries_nothing(self):
        chunks = split_text_into_chunks(SAMPLE, chunk_size=40, overlap=0)
        assert chunks[1].startswith("epsilon")
        assert "delta" not in chunks[1]

    def test_oversized_sentence_is_not_split(self):
        giant = "A" * 300
        chunks = split_text_into_chunks(f"{giant}. short.", chunk_size=100, overlap=0)

        assert chunks[0] == giant + "。"
        assert all(c.strip() for c in chunks)

    def test_chunks_are_trimmed_and_non_empty(self):
        for chunk in split_text_into_chunks(long_text(), chunk_size=80, overlap=24):
            assert chunk == chunk.strip()
            assert chunk

    def test_sizes_are_approximately_bounded(self):
        chunk_size, overlap = 120, 30
        text = long_text()
        longest_sentence = max(len(s) for s in split_sentences(text))

        chunks = split_text_into_chunks(text, chunk_size, overlap)

        assert len(chunks) > 1
        for chunk in chunks:
            assert len(chunk) <= chunk_size + overlap + longest_sentence

    def test_sentences_covered_in_order(self):
        text = long_text(25)
        chunks = split_text_into_chunks(text, chunk_size=100, overlap=18)

        position = 0
        for sentence in split_sentences(text):
            sentence = sentence.strip()
            while sentence not in chunks[position]:
                position += 1
                assert position < len(chunks), f"missing sentence: {sentence}"

    def test_custom_overlap_policy(self):
        calls = []

        def marker_policy(buffer, overlap):
            calls.append((buffer, overlap))
            return "[carry]"

        chunks = split_text_into_chunks(SAMPLE, chunk_size=40, overlap=99, overlap_policy=marker_policy)

        assert calls and calls[0][1] == 99
        assert chunks[1].startswith("[carry]")


class TestWordTailOverlap:
    """Tests for the default overlap policy."""

    def test_keeps_last_words(self):
        assert word_tail_overlap("one two three four five", 12) == "four five"

    def test_small_overlap_keeps_nothing(self):
        assert word_tail_overlap("one two three", 5) == ""

    def test_empty_buffer(self):
        assert word_tail_overlap("", 200) == ""


class TestChunker:
    """Tests for the Chunker wrapper."""

    def test_chunk_document_indexes(self):
        chunker = Chunker(chunk_size=40, overlap=12)
        chunks = chunker.chunk_document("notes.md", SAMPLE)

        assert [c.sequence_index for c in chunks] == [0, 1, 2]
        assert all(c.source_document == "notes.md" for c in chunks)
        assert chunks[0].char_length == len(chunks[0].text)

    def test_split_matches_function(self):
        chunker = Chunker(chunk_size=120, overlap=30)
        assert chunker.split(long_text()) == split_text_into_chunks(long_text(), 120, 30)

    @pytest.mark.parametrize("chunk_size, overlap", [(0, 10), (-5, 10), (100, -1)])
    def test_invalid_parameters(self, chunk_size, overlap):
        with pytest.raises(ValueError):
            Chunker(chunk_size=chunk_size, overlap=overlap)
