"""
SCRIBE CLIENT - Terminal drafting client
========================================

PURPOSE:
A command-line interface for the S.C.R.I.B.E API. Type a prompt, get a draft.
Tone and length can be switched at any time, and replies can be streamed.

USAGE:
    python client.py

    Make sure the server is running first: python run.py

COMMANDS:
    /tone <name>    - balanced, formal, casual, persuasive, witty, empathetic, authoritative
    /length <name>  - concise, standard, detailed, longform
    /stream         - Toggle streaming replies on/off
    /refs           - Toggle reference excerpts on/off
    /config         - Show the server's model and limits
    /quit or /exit  - Exit
"""

import json

import requests

from config import PORT


# -----------------------------------------------------------------------------
# CONFIGURATION
# -----------------------------------------------------------------------------
BASE_URL = f"http://localhost:{PORT}"
TONE = "balanced"
LENGTH = "standard"
STREAMING = False
USE_REFERENCES = True


# -----------------------------------------------------------------------------
# UI HELPERS
# -----------------------------------------------------------------------------

def print_header():
    print("\n" + "="*60)
    print("✍️  S.C.R.I.B.E - Drafts in your own voice")
    print("="*60)
    print("\nCommands:")
    print("  /tone <name>   - Change tone")
    print("  /length <name> - Change length")
    print("  /stream        - Toggle streaming")
    print("  /refs          - Toggle reference excerpts")
    print("  /config        - Show server config")
    print("  /quit          - Exit")
    print("="*60 + "\n")


def get_user_input():
    try:
        return input("\nYou: ").strip()
    except (KeyboardInterrupt, EOFError):
        return None


def _payload(message):
    return {"message": message, "tone": TONE, "length": LENGTH, "use_references": USE_REFERENCES}


# -----------------------------------------------------------------------------
# API CALLS
# -----------------------------------------------------------------------------

def send_message(message):
    """
    POST /api/chat and return the text to print: the draft, followed by the
    server's warning if it sent one, or a short error message.
    """
    try:
        response = requests.post(f"{BASE_URL}/api/chat", json=_payload(message), timeout=300)
        if response.status_code != 200:
            try:
                err = response.json()
                if isinstance(err.get("detail"), str):
                    return f"❌ {err['detail']}"
            except ValueError:
                pass
            return f"❌ Error: {response.status_code} - {response.text}"

        data = response.json()
        text = data.get("reply", "")
        if data.get("warning"):
            text = f"{text}\n\n{data['warning']}" if text else data["warning"]
        return text
    except requests.exceptions.ConnectionError:
        return "❌ Cannot connect to backend. Start it with: python run.py"
    except requests.exceptions.Timeout:
        return "❌ Request timed out. Try a shorter length."


def stream_message(message):
    """POST /api/chat/stream and print deltas as they arrive."""
    try:
        with requests.post(f"{BASE_URL}/api/chat/stream", json=_payload(message), stream=True, timeout=300) as response:
            if response.status_code != 200:
                print(f"❌ Error: {response.status_code} - {response.text}")
                return
            for line in response.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data: "):
                    continue
                data = line[len("data: "):]
                if data == "[DONE]":
                    break
                frame = json.loads(data)
                if "delta" in frame:
                    print(frame["delta"], end="", flush=True)
                elif "warning" in frame:
                    print(f"\n{frame['warning']}", end="")
            print()
    except requests.exceptions.ConnectionError:
        print("❌ Cannot connect to backend. Start it with: python run.py")
    except requests.exceptions.Timeout:
        print("❌ Request timed out. Try a shorter length.")


def show_config():
    try:
        response = requests.get(f"{BASE_URL}/config", timeout=10)
        return json.dumps(response.json(), indent=2)
    except requests.exceptions.RequestException as e:
        return f"Error retrieving config: {e}"


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

def main():
    """Read prompts until /quit or /exit; handle the slash commands in between."""
    global TONE, LENGTH, STREAMING, USE_REFERENCES
    print_header()

    while True:
        user_input = get_user_input()
        if user_input is None or user_input in ["/quit", "/exit"]:
            print("\n👋 Goodbye!")
            break
        if not user_input:
            continue

        if user_input.startswith("/tone"):
            TONE = user_input[len("/tone"):].strip() or "balanced"
            print(f"✅ Tone: {TONE}")
            continue
        elif user_input.startswith("/length"):
            LENGTH = user_input[len("/length"):].strip() or "standard"
            print(f"✅ Length: {LENGTH}")
            continue
        elif user_input == "/stream":
            STREAMING = not STREAMING
            print(f"✅ Streaming {'on' if STREAMING else 'off'}")
            continue
        elif user_input == "/refs":
            USE_REFERENCES = not USE_REFERENCES
            print(f"✅ Reference excerpts {'on' if USE_REFERENCES else 'off'}")
            continue
        elif user_input == "/config":
            print(show_config())
            continue
        elif user_input.startswith("/"):
            print(f"❌ Unknown command: {user_input}")
            continue

        print(f"✍️  Draft ({TONE}, {LENGTH}):\n")
        if STREAMING:
            stream_message(user_input)
        else:
            print(send_message(user_input))


# Run the interactive loop when this file is executed (python client.py).
if __name__ == "__main__":
    main()
