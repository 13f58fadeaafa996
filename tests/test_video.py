from tellolink.middleware.video import FRAGMENT_SIZE, FrameAssembler


def test_full_fragments_then_short_fragment_yield_one_frame():
    a = FrameAssembler()
    parts = [b"a" * FRAGMENT_SIZE, b"b" * FRAGMENT_SIZE, b"tail"]

    assert a.feed(parts[0]) is None
    assert a.feed(parts[1]) is None
    assert a.pending == 2 * FRAGMENT_SIZE

    frame = a.feed(parts[2])
    assert frame == b"".join(parts)
    assert a.pending == 0


def test_short_fragment_alone_is_a_frame():
    a = FrameAssembler()
    assert a.feed(b"packet") == b"packet"


def test_buffer_resets_between_frames():
    a = FrameAssembler()
    assert a.feed(b"x" * FRAGMENT_SIZE) is None
    assert a.feed(b"1") == b"x" * FRAGMENT_SIZE + b"1"
    assert a.feed(b"2") == b"2"


def test_frame_is_a_copy_of_the_buffer():
    a = FrameAssembler()
    frame = a.feed(b"abc")
    a.feed(b"z" * FRAGMENT_SIZE)
    assert frame == b"abc"


def test_empty_datagram_does_not_publish_empty_frame():
    a = FrameAssembler()
    assert a.feed(b"") is None


def test_empty_datagram_ends_pending_frame():
    a = FrameAssembler()
    a.feed(b"y" * FRAGMENT_SIZE)
    assert a.feed(b"") == b"y" * FRAGMENT_SIZE


def test_oversized_datagram_ends_frame():
    a = FrameAssembler()
    big = b"q" * (FRAGMENT_SIZE + 1)
    assert a.feed(big) == big


def test_reset_drops_partial_frame():
    a = FrameAssembler()
    a.feed(b"p" * FRAGMENT_SIZE)
    a.reset()
    assert a.pending == 0
    assert a.feed(b"n") == b"n"
