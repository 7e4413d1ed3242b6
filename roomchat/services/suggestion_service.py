"""
Heuristic reply suggestions.

A pure function over the latest messages of a room: no state, no model, no
I/O. Messages only need ``content`` and ``sender_id`` attributes, so ORM rows
and response schemas both work.
"""
import re
from typing import List, Sequence
from uuid import UUID

MAX_SUGGESTIONS = 3

OPENERS = [
    "Hello! How's everyone doing?",
    "What's on your mind today?",
    "Any updates to share?",
]

AFTER_OWN_MESSAGE = [
    "Looking forward to hearing everyone's thoughts!",
    "What do you all think?",
    "Anyone else have ideas on this?",
]

FALLBACK = [
    "That's interesting!",
    "Thanks for sharing!",
    "Good point!",
]

# Keyword rules for the last message, checked in order; first match wins.
KEYWORD_RULES = [
    (
        ("hello", "hi", "hey", "good morning", "good afternoon", "good evening"),
        ["Hey there! 👋", "Hello! Good to see you!", "Hi! How's it going?"],
    ),
    (
        ("awesome", "great", "amazing", "fantastic"),
        ["Absolutely! That's fantastic!", "I totally agree! 🎉", "That's really awesome!"],
    ),
    (
        ("problem", "issue", "help", "stuck"),
        ["I'd be happy to help!", "Let me know if you need assistance", "What can we do to help?"],
    ),
    (
        ("thank", "thanks"),
        ["You're very welcome!", "Happy to help! 😊", "No problem at all!"],
    ),
    (
        ("project", "work", "deadline", "meeting"),
        ["Sounds like a solid plan!", "Let me know how I can contribute", "When do we need this completed?"],
    ),
    (
        ("weekend", "friday", "monday"),
        ["Hope you have a great weekend!", "Enjoy your time off!", "Looking forward to next week!"],
    ),
]

POSITIVE_WORDS = ("good", "nice", "love", "happy", "excited")


def _mentions(text: str, keywords: Sequence[str]) -> bool:
    # Whole-word match so "hi" does not fire on "this" or "which".
    return any(re.search(rf"\b{re.escape(word)}\b", text) for word in keywords)


def _question_suggestions(text: str) -> List[str]:
    if "how are you" in text or "how's it going" in text:
        return ["I'm doing great, thanks for asking!", "Pretty good, how about you?", "All good here! How's your day going?"]
    if "what" in text and "think" in text:
        return ["I think that's a great point!", "Interesting perspective, I agree!", "That makes a lot of sense to me"]
    if "anyone" in text or "everybody" in text:
        return ["Count me in!", "I'm interested!", "Sounds good to me!"]
    return ["That's a good question!", "Let me think about that...", "Hmm, interesting point!"]


def _tone_suggestions(messages: Sequence) -> List[str]:
    contents = [m.content.lower() for m in messages]
    if any(_mentions(text, POSITIVE_WORDS) for text in contents):
        return ["That's really nice to hear!", "I love that energy! 💪", "Glad things are going well!"]

    last_few = messages[-3:]
    if len(last_few) > 1 and all(len(m.content) > 10 for m in last_few):
        return ["That's an interesting point!", "I see what you mean", "Thanks for sharing that perspective"]
    return ["Interesting! Tell me more", "That makes sense", "I appreciate you sharing that"]


def generate_suggestions(messages: Sequence, current_user_id: UUID) -> List[str]:
    """
    Up to three reply suggestions for ``current_user_id`` given the room's
    recent messages in chronological order.
    """
    if not messages:
        return OPENERS[:MAX_SUGGESTIONS]

    last = messages[-1]
    if str(last.sender_id) == str(current_user_id):
        return AFTER_OWN_MESSAGE[:MAX_SUGGESTIONS]

    text = last.content.lower()
    if "?" in text:
        suggestions = _question_suggestions(text)
    else:
        suggestions = next(
            (replies for keywords, replies in KEYWORD_RULES if _mentions(text, keywords)),
            None,
        ) or _tone_suggestions(messages)

    return (suggestions or FALLBACK)[:MAX_SUGGESTIONS]
