"""Scripted stand-in for dfrotz used by the end-to-end tests.

Speaks the same pipe dialect: output followed by a bare ">" prompt, the
filename and overwrite prompts of save/restore, and the quit confirmation.
Extra verbs exercise failure paths: "die" exits mid-reply, "hang" never
answers and "more" pauses at a MORE prompt. FAKE_DFROTZ_SAVE_PROMPT
replaces the save filename prompt.
"""

import json
import os
import sys
from pathlib import Path

ROOMS = {
    "West of House": (
        "You are standing in an open field west of a white house, "
        "with a boarded front door.\nThere is a small mailbox here."
    ),
    "North of House": "You are facing the north side of a white house.",
}
EXITS = {
    ("West of House", "north"): "North of House",
    ("North of House", "south"): "West of House",
}
DIRECTIONS = {"n": "north", "s": "south", "e": "east", "w": "west"}


def emit(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def prompt() -> None:
    emit("\n>")


def ask() -> str | None:
    line = sys.stdin.readline()
    if not line:
        return None
    return line.strip()


def describe(state: dict) -> str:
    room = state["location"]
    return f"{room}\n{ROOMS[room]}\n"


def save(state: dict) -> None:
    emit(os.environ.get("FAKE_DFROTZ_SAVE_PROMPT", "Please enter a filename [fake.qzl]: "))
    name = ask()
    if not name:
        emit("Failed.\n")
        return
    path = Path(name)
    if path.exists():
        emit("Overwrite existing file? ")
        if (ask() or "").lower() != "y":
            emit("Failed.\n")
            return
    try:
        path.write_text(json.dumps(state))
    except OSError:
        emit("Failed.\n")
        return
    emit("Ok.\n")


def restore(state: dict) -> None:
    emit("Please enter a filename [fake.qzl]: ")
    name = ask()
    try:
        state.update(json.loads(Path(name or "").read_text()))
    except (OSError, ValueError):
        emit("Failed.\n")
        return
    emit("Ok.\n")


def main() -> int:
    state = {"location": "West of House", "score": 0, "moves": 0, "leaflet": False}

    emit("Fake Adventure: A Test Game\nRelease 1 / Serial number 000000\n\n")
    emit(describe(state))
    prompt()

    while True:
        command = ask()
        if command is None:
            return 0
        verb = command.lower()
        verb = DIRECTIONS.get(verb, verb)
        if verb.startswith("go "):
            verb = verb[3:]

        if verb == "quit":
            emit("Are you sure you want to quit? ")
            if (ask() or "").lower().startswith("y"):
                emit("\nThanks for playing.\n")
                return 0
        elif verb == "save":
            save(state)
        elif verb == "restore":
            restore(state)
        elif verb == "score":
            emit(
                f"Your score is {state['score']} (total of 350 points), "
                f"in {state['moves']} moves.\n"
            )
        elif verb == "die":
            emit("The ground gives way beneath you.\n")
            return 3
        elif verb == "hang":
            continue
        elif verb == "more":
            emit("The story goes on.\n***MORE***")
            ask()
            emit("\nAnd on.\n")
        else:
            state["moves"] += 1
            if verb == "look":
                emit(describe(state))
            elif verb in ("north", "south", "east", "west"):
                target = EXITS.get((state["location"], verb))
                if target is None:
                    emit("You can't go that way.\n")
                else:
                    state["location"] = target
                    emit(describe(state))
            elif verb in ("take leaflet", "get leaflet"):
                if state["location"] == "West of House" and not state["leaflet"]:
                    state["leaflet"] = True
                    state["score"] += 5
                    emit("Taken.\n")
                else:
                    emit("You can't see any leaflet here!\n")
            else:
                word = verb.split()[0] if verb.split() else verb
                emit(f'I don\'t know the word "{word}".\n')
        prompt()


if __name__ == "__main__":
    sys.exit(main())
