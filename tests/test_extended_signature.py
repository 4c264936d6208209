from datetime import datetime, timedelta, timezone

import pytest

from Cryptodome.Hash import SHA512

from unikeys import codec
from unikeys.errors import DecodeError, InvalidParameterError
from unikeys.pki import ExtendedSignature, PublicKey, extract_key_id


@pytest.mark.asyncio
async def test_sign_extended_payload(private_key):
    data = b"document body"
    before = datetime.now(timezone.utc)

    packed = await private_key.sign_extended(data)

    outer = codec.load(packed)
    assert set(outer) == {"exts", "sign"}
    payload = codec.load(outer["exts"])
    assert payload["key"] == private_key.fingerprint
    assert payload["sha512"] == SHA512.new(data).digest()
    assert PublicKey.unpack(payload["pub_key"]) == private_key.public_key
    assert before - timedelta(seconds=1) <= payload["created_at"] <= datetime.now(timezone.utc)

    embedded_key = PublicKey.unpack(payload["pub_key"])
    assert await embedded_key.verify(outer["exts"], outer["sign"], pss_hash="sha512", mgf1_hash="sha1")


@pytest.mark.asyncio
async def test_verify_extended(private_key):
    data = b"document body"
    packed = await private_key.sign_extended(data)

    signature = await ExtendedSignature.verify(packed, data)

    assert signature is not None
    assert signature.public_key == private_key.public_key
    assert signature.key == private_key.fingerprint
    assert extract_key_id(packed) == private_key.fingerprint


@pytest.mark.asyncio
async def test_verify_extended_rejects_tampering(private_key):
    data = b"document body"
    packed = await private_key.sign_extended(data)

    assert await ExtendedSignature.verify(packed, b"other body") is None

    outer = codec.load(packed)
    bad_sign = bytearray(outer["sign"])
    bad_sign[0] ^= 0x01
    forged = codec.dump({"exts": outer["exts"], "sign": bytes(bad_sign)})
    assert await ExtendedSignature.verify(forged, data) is None


@pytest.mark.asyncio
async def test_verify_extended_rejects_swapped_key(private_key, small_key):
    data = b"document body"
    outer = codec.load(await private_key.sign_extended(data))
    payload = codec.load(outer["exts"])
    payload["pub_key"] = small_key.public_key.packed()
    forged = codec.dump({"exts": codec.dump(payload), "sign": outer["sign"]})

    assert await ExtendedSignature.verify(forged, data) is None


@pytest.mark.asyncio
async def test_malformed_extended_signature(private_key):
    with pytest.raises(DecodeError):
        await ExtendedSignature.verify(b"\x00", b"data")
    with pytest.raises(DecodeError):
        ExtendedSignature.parse(codec.dump({"exts": codec.dump({"key": b"k"}), "sign": b"s"}))


@pytest.mark.asyncio
async def test_small_key_cannot_sign_extended(small_key):
    # SHA-512 PSS needs at least a 522-bit modulus
    with pytest.raises(InvalidParameterError, match="522 bits"):
        await small_key.sign_extended(b"data")
