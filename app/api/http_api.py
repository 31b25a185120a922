"""
HTTP API adapter for the writing assistant.

Architectural role:
- Expose the rendered system prompt and the build-declaration manifest.
- Expose an OpenAI-compatible chat endpoint that applies the system prompt.
- Delegate generation to `app.llm.service.generate_answer`.

Endpoint responsibilities:
- `GET /v1/system-prompt`: rendered prompt text plus the date it carries.
- `GET /v1/build/dependencies`: dev-shell dependency manifest.
- `GET /v1/models`: the configured model as OpenAI-style metadata.
- `POST /v1/chat/completions`: validate input, replace any client system
  message with the rendered prompt, invoke the model, and format output.

Input validation behavior:
- Body that is not a JSON object -> HTTP 400.
- Missing/empty `messages` -> HTTP 400.
- Message items without a string `role`/`content` -> HTTP 400.
- Last message not from `user` -> HTTP 400.
- `model` other than the configured `MODEL_NAME` -> HTTP 400.
- Malformed `date` query parameter -> HTTP 400.

Error handling strategy:
- Explicit validation failures return structured HTTP 400 JSON responses.
- Build-declaration syntax errors return HTTP 422 with position details.
- Provider failures arrive as sanitized strings from `app.llm.client` and are
  returned as assistant content, matching the CLI behavior.

Side effects:
- Reads the prompt template and `flake.nix` from disk per request.
- Emits debug logs only when `DEBUG == "true"`.
"""

from dotenv import load_dotenv

load_dotenv()

import json
import logging
import os
import time
import uuid
from datetime import datetime
from typing import List

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from app.buildenv.lexer import NixSyntaxError
from app.buildenv.manifest import dependency_names, load_manifest
from app.llm import provider_config
from app.llm.service import generate_answer
from app.prompting.system_prompt import current_date_string, render_system_prompt

logger = logging.getLogger(__name__)

app = FastAPI()
# Sensitive request/response debug logging is opt-in.
DEBUG = os.getenv("DEBUG") == "true"


# ============================================================
# Request Schema
# ============================================================

class ChatMessage(BaseModel):
    role: str
    content: str


class ChatCompletionRequest(BaseModel):
    messages: List[ChatMessage]
    model: str = ""
    stream: bool = False


def _bad_request(message: str):
    return JSONResponse(status_code=400, content={"error": message})


def _completion_envelope(model_name: str, content: str) -> dict:
    return {
        "id": f"chatcmpl-{uuid.uuid4().hex}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model_name,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop"
            }
        ]
    }


# ============================================================
# Prompt and Manifest
# ============================================================

@app.get("/v1/system-prompt")
def system_prompt(date: str = None):
    """Return the rendered system prompt, optionally for a fixed date."""
    now = None
    if date:
        try:
            now = datetime.strptime(date, "%Y-%m-%d")
        except ValueError:
            return _bad_request("date must be YYYY-MM-DD")

    return {
        "date": current_date_string(now),
        "content": render_system_prompt(now=now),
    }


@app.get("/v1/build/dependencies")
def build_dependencies():
    """Return the development shell manifest from the build declaration."""
    try:
        manifest = load_manifest()
    except NixSyntaxError as err:
        return JSONResponse(
            status_code=422,
            content={"error": err.reason, "line": err.line, "column": err.column},
        )

    if manifest is None:
        return JSONResponse(status_code=422, content={"error": "No development shell found"})

    return {
        "shell": manifest.shell_attr,
        "package": manifest.package_attr,
        "inputs": manifest.inputs,
        "build_inputs": manifest.build_inputs,
        "native_build_inputs": manifest.native_build_inputs,
        "dependencies": dependency_names(manifest),
        "env": manifest.env,
    }


# ============================================================
# Model Listing
# ============================================================

@app.get("/v1/models")
def list_models():
    return {
        "object": "list",
        "data": [
            {
                "id": provider_config.MODEL_NAME,
                "object": "model",
                "created": int(time.time()),
                "owned_by": provider_config.PROVIDER
            }
        ]
    }


# ============================================================
# OpenAI-Compatible Chat Completions
# ============================================================

@app.post("/v1/chat/completions")
async def chat_completions(request: Request):
    """
    OpenAI-compatible chat completions endpoint.

    The latest message must be a user turn; earlier user/assistant turns are
    forwarded as history. Client-supplied system messages are dropped so the
    rendered system prompt is always the only system instruction.
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return _bad_request("Body must be JSON")

    if not isinstance(body, dict):
        return _bad_request("Body must be a JSON object")

    if not body.get("messages"):
        return _bad_request("No messages provided")

    try:
        chat = ChatCompletionRequest(**body)
    except ValidationError:
        return _bad_request("Malformed messages")

    last_message = chat.messages[-1]
    if last_message.role != "user" or not last_message.content.strip():
        return _bad_request("Last message must be a non-empty user message")

    model_name = chat.model or provider_config.MODEL_NAME
    if model_name != provider_config.MODEL_NAME:
        return _bad_request("Unknown model requested")

    history = [msg.model_dump() for msg in chat.messages[:-1]]

    if DEBUG:
        logger.debug("Incoming messages: %r", body.get("messages"))
        logger.debug("Stream: %s, model: %s", chat.stream, model_name)

    result = await run_in_threadpool(
        generate_answer,
        last_message.content,
        history=history,
        stream=chat.stream,
    )

    if chat.stream:
        if isinstance(result, str):
            result = [result]
        return StreamingResponse(
            _sse_frames(result, model_name),
            media_type="text/event-stream",
        )

    if hasattr(result, "__iter__") and not isinstance(result, str):
        result = "".join(str(chunk) for chunk in result)

    return _completion_envelope(model_name, result or "")


def _sse_frames(chunks, model_name: str):
    """
    Yield SSE frames matching OpenAI chunk semantics.

    - Content chunks use `chat.completion.chunk` with `delta.content`.
    - Terminal chunk sets `finish_reason: "stop"`.
    - Final sentinel frame is `[DONE]`.
    """
    completion_id = f"chatcmpl-{uuid.uuid4().hex}"
    created = int(time.time())

    for chunk in chunks:
        data = {
            "id": completion_id,
            "object": "chat.completion.chunk",
            "created": created,
            "model": model_name,
            "choices": [
                {
                    "index": 0,
                    "delta": {"content": str(chunk)},
                    "finish_reason": None
                }
            ]
        }
        yield f"data: {json.dumps(data)}\n\n"

    end_data = {
        "id": completion_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": model_name,
        "choices": [
            {
                "index": 0,
                "delta": {},
                "finish_reason": "stop"
            }
        ]
    }
    yield f"data: {json.dumps(end_data)}\n\n"
    yield "data: [DONE]\n\n"
