"""
Command-line adapter for the prompt and build-declaration tooling.

Architectural role:
- Exposes rendering and validation of the shipped artifacts to a terminal.
- Provides one-shot (`ask`) and interactive (`chat`) access to the model with
  the system prompt applied.
- Delegates all model calls to `app.llm.service.generate_answer`.

Subcommands:
- `render [--date YYYY-MM-DD] [--template PATH]`: print the rendered prompt.
- `check-prompt [PATH]`: CommonMark and math-delimiter checks.
- `check-build [PATH]`: syntax, undefined variables, round trip.
- `deps [PATH]`: dependency list and environment variable names.
- `ask QUESTION [--stream]`: single model call.
- `chat`: interactive loop (`exit`/`quit` to leave, `clear chat` to reset).
- `serve [--host H] [--port P]`: run the HTTP adapter with uvicorn.

Exit codes:
- 0 on success, 1 when a check reports issues or a file cannot be read,
  2 for argument errors (argparse).

Error handling strategy:
- Syntax errors in the build declaration are reported as issues, not
  tracebacks.
- EOF and keyboard interrupts end the chat loop without traceback output.
"""

from dotenv import load_dotenv

load_dotenv()

import argparse
import logging
import os
import sys
from datetime import datetime

from app.buildenv.lexer import NixSyntaxError
from app.buildenv.manifest import (
    BUILD_DECLARATION_PATH,
    dependency_names,
    parse_manifest,
    validate_manifest,
)
from app.llm.service import generate_answer
from app.prompting.system_prompt import render_system_prompt, template_path
from app.validation.markdown_check import check_markdown
from app.validation.math_delimiters import check_math_delimiters


# =========================================================
# OUTPUT HELPERS
# =========================================================

def _read(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as err:
        print(f"cannot read {path}: {err.strerror}", file=sys.stderr)
        return None


def _report(issues, source) -> int:
    for issue in issues:
        print(issue.format(source))
    if issues:
        print(f"{len(issues)} issue(s) found in {source}")
        return 1
    print(f"{source}: ok")
    return 0


def print_response(response):
    """Print streamed chunks incrementally, scalar responses directly."""
    if hasattr(response, "__iter__") and not isinstance(response, (str, bytes)):
        for chunk in response:
            print(chunk, end="", flush=True)
        print()
    elif response is not None:
        print(response)


# =========================================================
# COMMANDS
# =========================================================

def cmd_render(args) -> int:
    now = datetime.strptime(args.date, "%Y-%m-%d") if args.date else None
    template = None
    if args.template:
        template = _read(args.template)
        if template is None:
            return 1
    print(render_system_prompt(now=now, template=template), end="")
    return 0


def cmd_check_prompt(args) -> int:
    path = args.path or template_path()
    text = _read(path)
    if text is None:
        return 1
    issues = check_markdown(text) + check_math_delimiters(text)
    issues.sort(key=lambda issue: issue.line or 0)
    return _report(issues, path)


def cmd_check_build(args) -> int:
    path = args.path or BUILD_DECLARATION_PATH
    text = _read(path)
    if text is None:
        return 1
    return _report(validate_manifest(text), path)


def cmd_deps(args) -> int:
    path = args.path or BUILD_DECLARATION_PATH
    text = _read(path)
    if text is None:
        return 1
    try:
        manifest = parse_manifest(text)
    except NixSyntaxError as err:
        print(f"{path}: {err}", file=sys.stderr)
        return 1
    if manifest is None:
        print(f"{path}: no development shell found", file=sys.stderr)
        return 1

    for name in dependency_names(manifest):
        print(name)
    for name in manifest.env:
        print(f"env {name}")
    return 0


def cmd_ask(args) -> int:
    question = " ".join(args.question).strip()
    if not question:
        print("empty question", file=sys.stderr)
        return 1
    print_response(generate_answer(question, stream=args.stream))
    return 0


def cmd_chat(args) -> int:
    """Run the interactive terminal session; history stays in memory only."""
    history = []

    print("Writing assistant started. (Type 'exit' to quit)\n")
    print("-" * 60)

    while True:

        try:
            question = input("Question: ").strip()

        except EOFError:
            print()
            break

        except KeyboardInterrupt:
            print("\nInterrupted.")
            break

        if not question:
            continue

        if question.lower() in ("exit", "quit"):
            break

        if question.lower() in ("empty chat", "clear chat"):
            history = []
            print("Chat cleared.")
            continue

        print("\nResponse:\n")

        response = generate_answer(question, history=history, stream=args.stream)
        if hasattr(response, "__iter__") and not isinstance(response, (str, bytes)):
            chunks = []
            for chunk in response:
                chunks.append(chunk)
                print(chunk, end="", flush=True)
            print()
            answer = "".join(chunks)
        else:
            answer = response or ""
            print(answer)

        history.append({"role": "user", "content": question})
        history.append({"role": "assistant", "content": answer})

        print("\n" + "-" * 60 + "\n")

    return 0


def cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run("app.api.http_api:app", host=args.host, port=args.port)
    return 0


# =========================================================
# ENTRYPOINT
# =========================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assistant-prompt",
        description="Render and check the assistant prompt and build declaration",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Print the rendered system prompt")
    render.add_argument("--date", default=None, help="Date to render (YYYY-MM-DD)")
    render.add_argument("--template", default=None, help="Template file to render instead")
    render.set_defaults(func=cmd_render)

    check_prompt = sub.add_parser("check-prompt", help="Check prompt markdown and math delimiters")
    check_prompt.add_argument("path", nargs="?", default=None)
    check_prompt.set_defaults(func=cmd_check_prompt)

    check_build = sub.add_parser("check-build", help="Check the build declaration")
    check_build.add_argument("path", nargs="?", default=None)
    check_build.set_defaults(func=cmd_check_build)

    deps = sub.add_parser("deps", help="List development shell dependencies")
    deps.add_argument("path", nargs="?", default=None)
    deps.set_defaults(func=cmd_deps)

    ask = sub.add_parser("ask", help="Ask the model one question")
    ask.add_argument("question", nargs="+")
    ask.add_argument("--stream", action="store_true")
    ask.set_defaults(func=cmd_ask)

    chat = sub.add_parser("chat", help="Interactive session")
    chat.add_argument("--stream", action="store_true")
    chat.set_defaults(func=cmd_chat)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8001")))
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "render" and args.date:
        try:
            datetime.strptime(args.date, "%Y-%m-%d")
        except ValueError:
            parser.error("--date must be YYYY-MM-DD")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
