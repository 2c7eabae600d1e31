import pytest

from simplebot.models import Message, Sender, Settings


def test_message_is_immutable():
    msg = Message("hi", Sender.USER, 1)
    with pytest.raises(AttributeError):
        msg.text = "changed"


def test_message_dict_roundtrip():
    msg = Message("hello", Sender.BOT, 1234)
    assert msg.to_dict() == {"text": "hello", "sender": "bot", "timestamp": 1234}
    assert Message.from_dict(msg.to_dict()) == msg
    assert not msg.is_user


def test_message_from_dict_rejects_bad_types():
    with pytest.raises(TypeError):
        Message.from_dict({"text": 5, "sender": "user", "timestamp": 1})
    with pytest.raises(TypeError):
        Message.from_dict({"text": "x", "sender": "user", "timestamp": True})


def test_settings_should_speak_needs_both_flags():
    assert Settings().should_speak
    assert not Settings(autoSpeak=False).should_speak
    assert not Settings(voiceOutput=False).should_speak


def test_settings_toggled():
    assert Settings().toggled("darkMode").darkMode is True
    with pytest.raises(KeyError):
        Settings().toggled("volume")


@pytest.mark.parametrize("timestamp", [float("inf"), float("nan"), 1e20, -1])
def test_message_from_dict_rejects_out_of_range_timestamp(timestamp):
    with pytest.raises(ValueError):
        Message.from_dict({"text": "a", "sender": "user", "timestamp": timestamp})
