"""Tests for prompt assembly and the answer fallback chain."""
from unittest.mock import AsyncMock

import pytest

from kbbot.services.answer_assembler import (
    AnswerAssembler,
    build_prompt,
    estimate_tokens,
    guard_prompt,
)
from kbbot.services.corpus_loader import KNOWLEDGE_UNAVAILABLE, CorpusLoader, format_block
from kbbot.services.prompts import ReplyText
from tests.conftest import remote


@pytest.fixture
def processed_store(document_store):
    document_store.add("processed", remote("a.md", "1"), "Cats are mammals.")
    document_store.add("processed", remote("b.md", "2"), "Dogs bark loudly.")
    document_store.add("knowledge", remote("faq.md", "3"), "Refunds take 5 days.")
    return document_store


class TestPromptTemplate:
    """Tests for the prompt text."""

    def test_template_sections(self):
        prompt = build_prompt("退货政策是什么？", "CONTEXT")

        assert prompt.startswith("基于以下知识库内容回答问题：")
        assert "知识库内容：\nCONTEXT" in prompt
        assert "用户问题：退货政策是什么？" in prompt
        assert prompt.endswith("如果知识库中没有相关信息，请说明无法回答。")

    def test_estimate_tokens(self):
        assert estimate_tokens("x" * 400) == 100


class TestGuardPrompt:
    """Tests for the token budget."""

    def test_under_budget_untouched(self):
        prompt, truncated = guard_prompt("q", "short context")

        assert prompt == build_prompt("q", "short context")
        assert truncated is False

    def test_over_budget_rebuilt_with_prefix(self):
        context = "x" * 200_000

        prompt, truncated = guard_prompt("q", context)

        assert truncated is True
        assert prompt == build_prompt("q", "x" * 10_000 + "...")

    def test_custom_limits(self):
        prompt, truncated = guard_prompt(
            "q", "abcdefghij", token_limit=10, fallback_context_chars=3, estimator=len
        )

        assert truncated is True
        assert "abc..." in prompt
        assert "abcd" not in prompt

    def test_rebuilt_prompt_not_checked_again(self):
        prompt, truncated = guard_prompt(
            "q", "abcdefghij", token_limit=1, fallback_context_chars=5, estimator=len
        )

        assert truncated is True
        assert "abcde..." in prompt


class TestAnswerAssembler:
    """Tests for AnswerAssembler."""

    @pytest.mark.asyncio
    async def test_rag_mode_retrieves_matching_block(self, processed_store, mock_llm_service):
        assembler = AnswerAssembler(CorpusLoader(processed_store, mode="rag"), mock_llm_service)

        result = await assembler.answer("cats mammals")

        assert result["answer"] == "This is a test answer."
        assert result["corpus_source"] == "processed"
        assert result["truncated"] is False
        assert result["response_time_ms"] >= 0

        prompt = mock_llm_service.complete.call_args[0][0]
        assert "Cats are mammals." in prompt
        assert "Dogs bark loudly." not in prompt
        assert "用户问题：cats mammals" in prompt

    @pytest.mark.asyncio
    async def test_simple_mode_uses_whole_corpus(self, processed_store, mock_llm_service):
        assembler = AnswerAssembler(CorpusLoader(processed_store), mock_llm_service)

        result = await assembler.answer("unrelated question")

        prompt = mock_llm_service.complete.call_args[0][0]
        assert format_block("faq.md", "Refunds take 5 days.") in prompt
        assert result["context_length"] == len(format_block("faq.md", "Refunds take 5 days."))
        assert result["corpus_source"] == "simple"

    @pytest.mark.asyncio
    async def test_rag_fallback_to_simple_corpus(self, processed_store, mock_llm_service):
        processed_store.failing_folders.add("processed")
        assembler = AnswerAssembler(CorpusLoader(processed_store, mode="rag"), mock_llm_service)

        result = await assembler.answer("refunds")

        assert result["corpus_source"] == "simple"
        assert "Refunds take 5 days." in mock_llm_service.complete.call_args[0][0]

    @pytest.mark.asyncio
    async def test_placeholder_corpus_still_asked(self, document_store, mock_llm_service):
        document_store.failing_folders.add("knowledge")
        assembler = AnswerAssembler(CorpusLoader(document_store), mock_llm_service)

        result = await assembler.answer("anything")

        assert result["corpus_source"] == "placeholder"
        assert KNOWLEDGE_UNAVAILABLE in mock_llm_service.complete.call_args[0][0]

    @pytest.mark.asyncio
    async def test_long_corpus_truncated(self, document_store, mock_llm_service):
        document_store.add("knowledge", remote("huge.md", "1"), "y" * 200_000)
        assembler = AnswerAssembler(CorpusLoader(document_store), mock_llm_service)

        result = await assembler.answer("q")

        assert result["truncated"] is True
        prompt = mock_llm_service.complete.call_args[0][0]
        assert len(prompt) < 11_000

    @pytest.mark.asyncio
    async def test_completion_failure_returns_apology(self, processed_store, failing_llm_service):
        assembler = AnswerAssembler(CorpusLoader(processed_store, mode="rag"), failing_llm_service)

        result = await assembler.answer("cats")

        assert result["answer"] == ReplyText.APOLOGY
        assert result["corpus_source"] == "processed"

    @pytest.mark.asyncio
    async def test_unexpected_failure_returns_apology(self, document_store, mock_llm_service):
        loader = CorpusLoader(document_store)
        loader.load = AsyncMock(side_effect=RuntimeError("boom"))
        assembler = AnswerAssembler(loader, mock_llm_service)

        answer = await assembler.answer_question("cats")

        assert answer == ReplyText.APOLOGY
        mock_llm_service.complete.assert_not_called()
