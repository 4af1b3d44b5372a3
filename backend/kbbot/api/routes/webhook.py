"""Messaging-platform webhook: signature echo and text message replies."""
import hashlib
import re
import time
import xml.etree.ElementTree as ET
from typing import Dict, Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response

from kbbot.api.routes.ask import get_answer_assembler
from kbbot.services.answer_assembler import AnswerAssembler
from kbbot.services.prompts import ReplyText
from kbbot.utils.logger import logger

router = APIRouter()


def verify_signature(token: str, signature: str, timestamp: str, nonce: str) -> bool:
    """Check ``sha1`` of the sorted token, timestamp and nonce against ``signature``."""
    if not token or not signature:
        return False
    joined = "".join(sorted([token, timestamp or "", nonce or ""]))
    return hashlib.sha1(joined.encode("utf-8")).hexdigest() == signature


def parse_message(body: str) -> Dict[str, str]:
    """Read the flat ``<xml>`` envelope into a tag -> text mapping."""
    root = ET.fromstring(body)
    return {child.tag: (child.text or "") for child in root}


def build_xml(fields: Dict[str, object]) -> str:
    root = ET.Element("xml")
    for tag, value in fields.items():
        ET.SubElement(root, tag).text = str(value)
    return ET.tostring(root, encoding="unicode")


def extract_question(content: str, markers: Iterable[str]) -> Optional[str]:
    """Strip mention markers; None when the bot is not mentioned."""
    markers = [m for m in markers if m]
    if not any(marker in content for marker in markers):
        return None
    pattern = "|".join(re.escape(marker) for marker in markers)
    return re.sub(pattern, "", content).strip()


async def handle_message(
    body: str, assembler: AnswerAssembler, markers: Iterable[str]
) -> Optional[Dict[str, object]]:
    """
    Build the reply envelope for one inbound message.

    Returns:
        Reply fields, or None when the body cannot be parsed
    """
    try:
        message = parse_message(body)
        msg_type = message["MsgType"]
        from_user = message["FromUserName"]
        to_user = message["ToUserName"]
    except (ET.ParseError, KeyError) as e:
        logger.error(f"Failed to parse message: {str(e)}")
        return None

    reply = ReplyText.GREETING
    if msg_type == "text":
        question = extract_question(message.get("Content", ""), markers)
        if question:
            reply = await assembler.answer_question(question)

    return {
        "ToUserName": from_user,
        "FromUserName": to_user,
        "CreateTime": int(time.time()),
        "MsgType": "text",
        "Content": reply,
    }


def get_app_settings():
    """Get application settings from main app."""
    from kbbot.main import settings
    if settings is None:
        raise HTTPException(status_code=503, detail="Settings not initialized")
    return settings


@router.get("/")
async def verify(
    signature: str = "",
    timestamp: str = "",
    nonce: str = "",
    echostr: str = "",
    app_settings=Depends(get_app_settings),
):
    """Echo ``echostr`` when the signature matches the shared token."""
    if verify_signature(app_settings.wechat_token, signature, timestamp, nonce):
        return PlainTextResponse(echostr)
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/")
async def receive_message(
    request: Request,
    app_settings=Depends(get_app_settings),
    assembler: AnswerAssembler = Depends(get_answer_assembler),
):
    """Answer a mentioned text message with an XML reply envelope."""
    raw = await request.body()
    try:
        body = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.warning(f"Message body is not valid UTF-8, replacing undecodable bytes: {str(e)}")
        body = raw.decode("utf-8", errors="replace")
    logger.info("Received message")

    reply = await handle_message(body, assembler, app_settings.mention_marker_list)
    if reply is None:
        return PlainTextResponse("")
    return Response(content=build_xml(reply), media_type="text/xml")
