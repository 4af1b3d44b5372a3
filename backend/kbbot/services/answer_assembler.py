"""Prompt assembly with a token budget and the answer fallback chain."""
import time
from typing import Any, Callable, Dict, Tuple

from kbbot.exceptions import CompletionError
from kbbot.services.corpus_loader import CorpusLoader
from kbbot.services.llm_service import LLMService
from kbbot.services.prompts import AnswerPrompt, ReplyText
from kbbot.services.retriever import ELLIPSIS, retrieve
from kbbot.utils.logger import logger
from kbbot.utils.metrics import ANSWERS, PROMPT_TRUNCATIONS


TokenEstimator = Callable[[str], float]


def estimate_tokens(prompt: str) -> float:
    """Rough token count: four characters per token."""
    return len(prompt) / 4


def build_prompt(question: str, context: str) -> str:
    return AnswerPrompt.build(question, context)


def guard_prompt(
    question: str,
    context: str,
    token_limit: int = 32000,
    fallback_context_chars: int = 10000,
    estimator: TokenEstimator = estimate_tokens,
) -> Tuple[str, bool]:
    """
    Build the prompt and rebuild it once if it is over the token budget.

    The over-budget prompt is discarded and replaced by one whose context is
    the first ``fallback_context_chars`` characters plus an ellipsis. The
    rebuilt prompt is not checked again.

    Returns:
        Tuple of (prompt, truncated)
    """
    prompt = build_prompt(question, context)
    estimated_tokens = estimator(prompt)
    if estimated_tokens <= token_limit:
        return prompt, False

    logger.warning(
        f"Prompt too long ({estimated_tokens:.0f} tokens), truncating context",
        extra={"estimated_tokens": estimated_tokens},
    )
    PROMPT_TRUNCATIONS.inc()
    truncated_context = context[:fallback_context_chars] + ELLIPSIS
    return build_prompt(question, truncated_context), True


class AnswerAssembler:
    """Turns a question into a completion, never failing the caller."""

    def __init__(
        self,
        corpus_loader: CorpusLoader,
        llm_service: LLMService,
        retrieval_max_chars: int = 8000,
        retrieval_max_blocks: int = 3,
        token_limit: int = 32000,
        fallback_context_chars: int = 10000,
        token_estimator: TokenEstimator = estimate_tokens,
    ):
        """
        Initialize answer assembler.

        Args:
            corpus_loader: Loader for the per-question corpus
            llm_service: Completion model client
            retrieval_max_chars: Character budget for retrieved context
            retrieval_max_blocks: Maximum matching blocks kept by retrieval
            token_limit: Estimated-token budget for the prompt
            fallback_context_chars: Context kept when the budget is exceeded
            token_estimator: Function estimating prompt tokens
        """
        self.corpus_loader = corpus_loader
        self.llm_service = llm_service
        self.retrieval_max_chars = retrieval_max_chars
        self.retrieval_max_blocks = retrieval_max_blocks
        self.token_limit = token_limit
        self.fallback_context_chars = fallback_context_chars
        self.token_estimator = token_estimator

    async def prepare(self, question: str) -> Dict[str, Any]:
        """Load the corpus, select context and build the guarded prompt."""
        snapshot = await self.corpus_loader.load()

        context = snapshot.text
        if self.corpus_loader.mode == "rag":
            logger.info("Using keyword retrieval over processed corpus")
            context = retrieve(
                question,
                snapshot.text,
                max_chars=self.retrieval_max_chars,
                max_blocks=self.retrieval_max_blocks,
            )
            logger.info(
                f"Retrieved {len(context)} characters of context",
                extra={"context_length": len(context), "corpus_source": snapshot.source},
            )

        prompt, truncated = guard_prompt(
            question,
            context,
            token_limit=self.token_limit,
            fallback_context_chars=self.fallback_context_chars,
            estimator=self.token_estimator,
        )
        return {
            "prompt": prompt,
            "context_length": len(context),
            "corpus_source": snapshot.source,
            "truncated": truncated,
        }

    async def answer(self, question: str) -> Dict[str, Any]:
        """
        Answer a question, reporting how the prompt was assembled.

        Returns:
            Dictionary with answer, context_length, corpus_source, truncated
            and response_time_ms. A failed completion yields the apology.
        """
        start_time = time.time()
        details: Dict[str, Any] = {"context_length": 0, "corpus_source": None, "truncated": False}

        try:
            prepared = await self.prepare(question)
            details.update(
                context_length=prepared["context_length"],
                corpus_source=prepared["corpus_source"],
                truncated=prepared["truncated"],
            )
            answer = await self.llm_service.complete(prepared["prompt"])
            ANSWERS.labels(outcome="answered").inc()
        except CompletionError as e:
            logger.error(f"Completion failed, replying with apology: {str(e)}")
            answer = ReplyText.APOLOGY
            ANSWERS.labels(outcome="apology").inc()
        except Exception as e:
            logger.error(f"Unexpected error answering question: {str(e)}", exc_info=True)
            answer = ReplyText.APOLOGY
            ANSWERS.labels(outcome="apology").inc()

        details["answer"] = answer
        details["response_time_ms"] = (time.time() - start_time) * 1000
        return details

    async def answer_question(self, question: str) -> str:
        result = await self.answer(question)
        return result["answer"]
