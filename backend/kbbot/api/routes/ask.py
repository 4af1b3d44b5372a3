"""Ask endpoint for question answering."""
from fastapi import APIRouter, Depends, HTTPException

from kbbot.api.schemas import AskRequest, AskResponse
from kbbot.services.answer_assembler import AnswerAssembler

router = APIRouter()


def get_answer_assembler() -> AnswerAssembler:
    """Get answer assembler from main app."""
    from kbbot.main import answer_assembler
    if answer_assembler is None:
        raise HTTPException(status_code=503, detail="Answer assembler not initialized")
    return answer_assembler


@router.post("/ask", response_model=AskResponse)
async def ask_question(
    request: AskRequest,
    assembler: AnswerAssembler = Depends(get_answer_assembler),
):
    """
    Answer a question against the knowledge base.

    Failures upstream degrade to a fallback reply, so this always returns 200
    for a valid request.
    """
    result = await assembler.answer(request.question)
    return AskResponse(**result)
