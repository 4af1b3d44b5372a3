"""Centralized prompt templates for the knowledge-base bot."""


class AnswerPrompt:
    """Prompt template for answering from knowledge-base context."""

    TEMPLATE = """基于以下知识库内容回答问题：

知识库内容：
{context}

用户问题：{question}

请基于知识库内容提供准确、简洁的回答。如果知识库中没有相关信息，请说明无法回答。"""

    @classmethod
    def build(cls, question: str, context: str) -> str:
        """
        Build answer generation prompt.

        Args:
            question: User's question
            context: Retrieved knowledge-base text

        Returns:
            Formatted prompt string
        """
        return cls.TEMPLATE.format(context=context, question=question)


class ReplyText:
    """Fixed user-facing replies."""

    APOLOGY = "抱歉，我暂时无法回答您的问题，请稍后重试。"
    GREETING = "您好！我是知识库机器人，请@我并提出您的问题。"
