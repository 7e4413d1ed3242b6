import uuid
from types import SimpleNamespace

from roomchat.services.suggestion_service import (
    AFTER_OWN_MESSAGE,
    MAX_SUGGESTIONS,
    OPENERS,
    generate_suggestions,
)

ME = uuid.uuid4()
THEM = uuid.uuid4()


def _msg(content, sender=THEM):
    return SimpleNamespace(content=content, sender_id=sender)


def test_empty_history_gets_openers():
    assert generate_suggestions([], ME) == OPENERS


def test_own_last_message_invites_replies():
    assert generate_suggestions([_msg("hi all"), _msg("my news", ME)], ME) == AFTER_OWN_MESSAGE


def test_sender_ids_compare_as_strings():
    assert generate_suggestions([_msg("done", str(ME))], ME) == AFTER_OWN_MESSAGE


def test_questions():
    assert generate_suggestions([_msg("How are you?")], ME)[0] == "I'm doing great, thanks for asking!"
    assert generate_suggestions([_msg("What do you think?")], ME)[0] == "I think that's a great point!"
    assert generate_suggestions([_msg("Anyone up for lunch?")], ME)[0] == "Count me in!"
    assert generate_suggestions([_msg("Is it raining?")], ME)[0] == "That's a good question!"


def test_keyword_rules():
    assert generate_suggestions([_msg("Hey folks")], ME)[0] == "Hey there! 👋"
    assert generate_suggestions([_msg("I'm stuck on this bug")], ME)[0] == "I'd be happy to help!"
    assert generate_suggestions([_msg("Thanks a lot")], ME)[0] == "You're very welcome!"
    assert generate_suggestions([_msg("The deadline moved")], ME)[0] == "Sounds like a solid plan!"


def test_keywords_match_whole_words():
    # "this" and "which" contain "hi" but are not greetings.
    suggestions = generate_suggestions([_msg("this one which")], ME)
    assert "Hey there! 👋" not in suggestions


def test_tone_fallbacks():
    assert generate_suggestions([_msg("so happy today")], ME)[0] == "That's really nice to hear!"

    long_discussion = [_msg("we should refactor the parser"), _msg("the tokenizer is slow too")]
    assert generate_suggestions(long_discussion, ME)[0] == "That's an interesting point!"

    assert generate_suggestions([_msg("ok")], ME)[0] == "Interesting! Tell me more"


def test_never_more_than_three():
    for history in ([], [_msg("hello")], [_msg("why?")], [_msg("ok")]):
        assert len(generate_suggestions(history, ME)) <= MAX_SUGGESTIONS
