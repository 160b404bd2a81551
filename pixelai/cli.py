"""
PIXELAI TERMINAL CLIENT
=======================

PURPOSE:
A command-line front end for the conversation engine. It only reads input,
calls ConversationController, and prints the resulting state; all
sequencing, persistence and identity handling happens in the services.

USAGE:
    python run.py

    Set PIXELAI_API_URL in .env if the backend is not on http://localhost:8000.

COMMANDS:
    /new                 - Start a new conversation (back to chat mode)
    /mode <name>         - Switch mode: chat, image, study (keeps the conversation)
    /create <name>       - Start something new in a mode ("Create image", "Study")
    /settings, /back     - Open settings / Back to Chat
    /history             - List past conversations
    /load <n>            - Open conversation number n from /history
    /attach <path>       - Attach a file to the next message (only its name/size/type are sent)
    /export [path]       - Print the conversation as markdown, or write it to path
    /login <token> [email], /logout
    /clear-history       - Delete the history list of the current account
    /quit or /exit       - Exit
"""

import asyncio
import logging
import mimetypes
import shlex
from pathlib import Path
from typing import Optional

from config import APP_NAME, LOCAL_STORAGE_DIR
from pixelai.models import Attachment, Mode, TurnStatus
from pixelai.services.conversation import ConversationController
from pixelai.services.identity import IdentityContext
from pixelai.services.inference_client import InferenceClient
from pixelai.services.store import PersistentStore
from pixelai.utils.time_info import UNKNOWN_ACTIVITY

logger = logging.getLogger("PixelAI")


# -----------------------------------------------------------------------------
# UI HELPERS
# -----------------------------------------------------------------------------

def print_header():
    print("\n" + "=" * 60)
    print(f"⚡ {APP_NAME} - What can I help with?")
    print("=" * 60)
    print("\nModes: chat, image, study   (/mode <name>, /create <name>)")
    print("Commands: /new /history /load <n> /attach <path> /export [path]")
    print("          /login <token> [email] /logout /clear-history /settings /back /quit")
    print("=" * 60 + "\n")


def attachment_from_path(path: str) -> Attachment:
    """Describe a local file for the next message without reading its contents."""
    file_path = Path(path).expanduser()
    mime_type, _ = mimetypes.guess_type(file_path.name)
    return Attachment(
        name=file_path.name,
        size_bytes=file_path.stat().st_size,
        mime_type=mime_type or "application/octet-stream",
    )


def format_history(controller: ConversationController) -> str:
    records = controller.history()
    if not records:
        return "No past conversations"
    account = "your account" if controller.identity.is_authenticated else "this device (guest)"
    output = f"\n📜 Conversations on {account} ({len(records)}):\n" + "-" * 60 + "\n"
    for i, record in enumerate(records, 1):
        if record.last_activity == UNKNOWN_ACTIVITY:
            when = "date unknown"
        else:
            when = record.last_activity.strftime("%Y-%m-%d %H:%M")
        output += f"{i}. {record.title}  [{record.mode.value}, {when}]\n"
    return output + "-" * 60


# -----------------------------------------------------------------------------
# COMMANDS
# -----------------------------------------------------------------------------

async def run_command(controller: ConversationController, raw: str) -> bool:
    """Handle one slash command. Returns False when the client should exit."""
    try:
        parts = shlex.split(raw)
    except ValueError as e:
        print(f"❌ {e}")
        return True
    command, args = parts[0].lower(), parts[1:]

    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        print(__doc__.split("COMMANDS:")[1].rstrip())
    elif command == "/new":
        controller.start_new_conversation()
        print("🔄 New conversation.")
    elif command in ("/mode", "/create") and args:
        try:
            mode = Mode(args[0].lower())
        except ValueError:
            print(f"❌ Unknown mode: {args[0]}")
            return True
        if not mode.is_conversational:
            print("❌ Use /settings to open settings")
            return True
        if command == "/mode":
            controller.switch_mode(mode)
        else:
            controller.start_new_mode(mode)
        print(f"✅ Mode: {mode.value}")
    elif command == "/settings":
        controller.switch_mode(Mode.SETTINGS)
        print("⚙️  Settings (use /back to return to chat)")
    elif command == "/back":
        controller.back_to_chat()
        print("✅ Back to chat")
    elif command == "/history":
        print(format_history(controller))
    elif command == "/load" and args:
        records = controller.history()
        try:
            record = records[int(args[0]) - 1]
        except (ValueError, IndexError):
            print(f"❌ No conversation number {args[0]}")
            return True
        if await controller.load_conversation(record):
            print(f"📂 Opened: {record.title}\n")
            print(controller.export_conversation())
        else:
            print("❌ Could not open that conversation. Try again later.")
    elif command == "/attach" and args:
        try:
            controller.set_attachment(attachment_from_path(args[0]))
        except OSError as e:
            print(f"❌ Cannot attach {args[0]}: {e}")
            return True
        print(f"📎 Attached {controller.pending_attachment.name}")
    elif command == "/export":
        document = controller.export_conversation()
        if args:
            Path(args[0]).expanduser().write_text(document, encoding="utf-8")
            print(f"💾 Exported to {args[0]}")
        else:
            print(document)
    elif command == "/login" and args:
        controller.identity.login(args[0], email=args[1] if len(args) > 1 else None)
        if controller.pending_refresh is not None:
            await controller.pending_refresh
        print(f"🔐 Signed in. {len(controller.history())} conversations on your account.")
    elif command == "/logout":
        controller.identity.logout()
        print("👋 Signed out. Back to guest history.")
    elif command == "/clear-history":
        controller.clear_history()
        print("🗑️  History cleared.")
    else:
        print(f"❌ Unknown command: {raw}")
    return True


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

async def chat_loop(controller: ConversationController) -> None:
    print_header()
    while True:
        try:
            user_input: Optional[str] = await asyncio.to_thread(input, f"\nYou ({controller.mode.value}): ")
        except (KeyboardInterrupt, EOFError):
            print("\n👋 Goodbye!")
            break

        user_input = user_input.strip()
        if not user_input:
            continue
        if user_input.startswith("/"):
            if not await run_command(controller, user_input):
                print("\n👋 Goodbye!")
                break
            continue
        if controller.mode is Mode.SETTINGS:
            print("❌ You are in settings. Use /back to return to chat.")
            continue

        outcome = await controller.send_turn(user_input)
        if outcome.status in (TurnStatus.REPLIED, TurnStatus.FAILED):
            print(f"🤖 {APP_NAME}: {outcome.reply.content}")
        elif outcome.error is not None:
            print(f"❌ {outcome.error}")


def main():
    """Build the services against the configured backend and run the prompt loop."""
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    store = PersistentStore(LOCAL_STORAGE_DIR)
    client = InferenceClient()
    controller = ConversationController(client, store, identity=IdentityContext.from_store(store))
    try:
        asyncio.run(_run(controller))
    except KeyboardInterrupt:
        print("\n\n👋 Goodbye!")
    finally:
        client.close()


async def _run(controller: ConversationController) -> None:
    if controller.identity.is_authenticated:
        await controller.refresh_history()
    await chat_loop(controller)


if __name__ == "__main__":
    main()
