import pytest

from topicrelay.envelope import parse_envelope


def test_regular_envelope():
    env = parse_envelope("tagAAA:cipherXYZ")
    assert env.tag == "tagAAA"
    assert env.payload == "cipherXYZ"
    assert env.raw == "tagAAA:cipherXYZ"
    assert not env.is_presence


def test_presence_envelope_keeps_prefix_in_payload():
    env = parse_envelope("tagBBB:presence:ping")
    assert env.tag == "tagBBB"
    assert env.payload == "presence:ping"
    assert env.is_presence


def test_split_happens_on_first_separator_only():
    env = parse_envelope("t:a:b:c")
    assert env.tag == "t"
    assert env.payload == "a:b:c"


def test_bytes_frames_are_decoded():
    env = parse_envelope(b"tag:cipher")
    assert env.raw == "tag:cipher"


@pytest.mark.parametrize(
    "frame",
    ["nocolonhere", ":payload-without-tag", "tag-without-payload:", ":", "", b"\xff\xfe:x"],
)
def test_malformed_frames_are_rejected(frame):
    assert parse_envelope(frame) is None
