import pytest

from sclib.util import RC4Random, bytes_to_size, is_pow2, size_to_bytes, to_pow2

KB = 1024
MB = 1024**2
GB = 1024**3
TB = 1024**4
PB = 1024**5
EB = 1024**6


def test_is_pow2():
    assert is_pow2(0) is False
    assert is_pow2(1) is True
    assert is_pow2(3) is False
    assert is_pow2(1024) is True


@pytest.mark.parametrize("size,expected", [(0, 1), (1, 1), (1023, 1024)])
def test_to_pow2(size, expected):
    x = to_pow2(size)
    assert x == expected
    assert is_pow2(x) is True


def test_to_pow2_rejects_negative():
    with pytest.raises(ValueError):
        to_pow2(-1)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1", 1),
        ("313", 313),
        ("1b", 1),
        ("1k", KB),
        ("1kb", KB),
        ("1m", MB),
        ("1mb", MB),
        ("1g", GB),
        ("1gb", GB),
        ("1t", TB),
        ("1tb", TB),
        ("1e", EB),
        ("1eb", EB),
        ("1p", PB),
        ("1pb", PB),
    ],
)
def test_size_to_bytes(text, expected):
    assert size_to_bytes(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "1gx",
        "gx",
        "1xgx",
        "1xb",
        "22eb",
        "31024pb",
        "31024111tb",
        "31024111111gb",
        "31024111111111mb",
        "31024111111111111kb",
        "",
    ],
)
def test_size_to_bytes_invalid(text):
    with pytest.raises(ValueError):
        size_to_bytes(text)


@pytest.mark.parametrize(
    "val,expected",
    [
        (313, "313 B"),
        (1024, "1.00 KB"),
        (2 * 1024, "2.00 KB"),
        (2 * 1024 * 1024, "2.00 MB"),
        (2 * 1024**3, "2.00 GB"),
        (2 * 1024**4, "2.00 TB"),
        (2 * 1024**5, "2.00 PB"),
        ((1 << 64) - 1, "16.00 EB"),
    ],
)
def test_bytes_to_size(val, expected):
    assert bytes_to_size(val) == expected


def test_bytes_to_size_out_of_range():
    with pytest.raises(ValueError):
        bytes_to_size(-1)
    with pytest.raises(ValueError):
        bytes_to_size(1 << 64)


def _seed(prefix):
    return bytes(prefix) + bytes(256 - len(prefix))


def test_rand_same_seed_same_output():
    seed = _seed([0, 1, 2, 3, 4, 5, 6, 6, 6, 6, 1, 5, 3, 5, 5, 6])
    out1 = RC4Random(seed).read(256)
    out2 = RC4Random(seed).read(256)
    assert len(out1) == 256
    assert out1 == out2


def test_rand_different_seed_different_output():
    seed1 = _seed([0, 1, 2, 3, 4, 5, 6, 6, 6, 6, 1, 5, 3, 5, 5, 6])
    seed2 = _seed([0, 1, 2, 3, 4, 3, 6, 6, 6, 6, 1, 2, 3, 5, 5, 6])
    assert RC4Random(seed1).read(256) != RC4Random(seed2).read(256)


def test_rand_non_positive_size():
    rnd = RC4Random(bytes(256))
    assert rnd.read(0) == b""
    assert rnd.read(-5) == b""


def test_rand_stream_is_continuous():
    seed = _seed([9, 8, 7])
    whole = RC4Random(seed).read(64)
    rnd = RC4Random(seed)
    assert rnd.read(20) + rnd.read(44) == whole


def test_rand_seed_length_checked():
    with pytest.raises(ValueError):
        RC4Random(bytes(16))