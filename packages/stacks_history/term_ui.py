"""Tiny terminal UI helpers (prompt_toolkit-based).

Interactive prompts used by the CLI's category flow, kept apart from the
bridge and wallet logic so they can be driven in tests through a pipe input.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]*$")


def _session_for(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def _cursor_line_start(b) -> None:
    b.cursor_position += b.document.get_start_of_line_position()


def _cursor_line_end(b) -> None:
    b.cursor_position += b.document.get_end_of_line_position()


# ----------------------------------------------------------------------------
# Category picker
# ----------------------------------------------------------------------------


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        if any(w.lower() == lower for w in self._vocab):
            return None
        for w in self._vocab:
            if w.lower().startswith(lower):
                remainder = w[len(text) :]
                return Suggestion(remainder) if remainder else None
        return None


class _NonEmpty(Validator):
    def validate(self, document) -> None:
        if not document.text.strip():
            raise ValidationError(message="Category cannot be empty (Esc or Ctrl+C to cancel)")


def select_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Category (Enter to save • Esc or Ctrl+C to cancel): ",
    session: PromptSession | None = None,
) -> str | None:
    """Prompt for a category label, suggesting from ``categories``.

    Any non-empty label is accepted; the suggestions only help typing. A
    strict prefix of a suggestion is completed on Tab or Enter. Returns the
    stripped label, or ``None`` when cancelled with Esc or Ctrl+C.

    When ``default`` is pre-filled the first printable keystroke replaces it
    wholesale, while Space, Backspace and cursor movement edit it in place.
    """

    words = list(categories)
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)

    kb = KeyBindings()
    _menu_opened = False
    _menu_index = 0
    replace_mode = bool(default)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in words:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return w
        return None

    def _pending_suggestion(b) -> str | None:
        s = getattr(b, "suggestion", None)
        text = getattr(s, "text", None)
        if not text:
            cand = _best_prefix_match(b.document.text)
            if cand:
                text = cand[len(b.document.text) :]
        return text or None

    def _cycle_menu(b) -> None:
        nonlocal _menu_opened, _menu_index
        if b.complete_state is None:
            b.start_completion(select_first=True)
            _menu_index = 0
        else:
            b.complete_next()
            _menu_index += 1
        _menu_opened = True

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        nonlocal replace_mode
        replace_mode = False
        _cycle_menu(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        b = event.app.current_buffer
        suggestion = _pending_suggestion(b)
        if suggestion:
            b.insert_text(suggestion)
        else:
            _cycle_menu(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            suggestion = _pending_suggestion(b)
            if suggestion:
                b.insert_text(suggestion)
            elif _menu_opened and not b.document.text and words:
                b.insert_text(words[max(0, min(_menu_index, len(words) - 1))])
        b.validate_and_handle()

    @kb.add("backspace", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        event.app.current_buffer.delete_before_cursor(1)
        replace_mode = False

    def _leave_replace_mode(action):
        def _handler(event) -> None:  # pragma: no cover
            nonlocal replace_mode
            replace_mode = False
            action(event.app.current_buffer)

        return _handler

    kb.add("left", eager=True)(_leave_replace_mode(lambda b: b.cursor_left(1)))
    kb.add("right", eager=True)(_leave_replace_mode(lambda b: b.cursor_right(1)))
    kb.add("home", eager=True)(_leave_replace_mode(_cursor_line_start))
    kb.add("end", eager=True)(_leave_replace_mode(_cursor_line_end))
    kb.add("delete", eager=True)(_leave_replace_mode(lambda b: b.delete(1)))
    kb.add("c-a", eager=True)(_leave_replace_mode(_cursor_line_start))
    kb.add("c-e", eager=True)(_leave_replace_mode(_cursor_line_end))

    @kb.add(Keys.Any, filter=Condition(lambda: replace_mode), eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        data = getattr(event, "data", "") or ""
        if not data or not data.isprintable():
            return
        b = event.app.current_buffer
        replace_mode = False
        if data == " ":
            b.insert_text(" ")
            return
        b.delete_before_cursor(len(b.document.text_before_cursor))
        b.delete(len(b.document.text_after_cursor))
        b.insert_text(data)

    prompt_kwargs: dict[str, Any] = {
        "message": message,
        "completer": completer,
        "default": default,
        "key_bindings": kb,
        "auto_suggest": _PrefixSuggest(words),
        "style": Style.from_dict({"auto-suggestion": "fg:#888888"}),
        "validator": _NonEmpty(),
        "validate_while_typing": False,
    }

    result = _session_for(session, kb).prompt(**prompt_kwargs)
    if result is None:
        return None
    return result.strip()


# ----------------------------------------------------------------------------
# Wallet hand-off
# ----------------------------------------------------------------------------


class _HexOrEmpty(Validator):
    def validate(self, document) -> None:
        if not _HEX_RE.match(document.text.strip()):
            raise ValidationError(message="Paste a txid or signed transaction as hex")


def prompt_wallet_answer(
    *,
    session: PromptSession | None = None,
    message: str = "Txid or signed transaction hex (Enter or Esc to cancel): ",
) -> str | None:
    """Read the wallet's answer for a pending contract call.

    Returns the raw text, ``""`` when the user just pressed Enter, or ``None``
    on Esc or Ctrl+C. Interpretation is left to the caller.
    """

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    return _session_for(session, kb).prompt(
        message,
        validator=_HexOrEmpty(),
        validate_while_typing=False,
        key_bindings=kb,
    )


__all__ = ["select_category", "prompt_wallet_answer"]
