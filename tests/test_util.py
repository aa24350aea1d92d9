from study_ingest_core.util import sha256_bytes, sha256_text


def test_sha256_bytes() -> None:
    assert (
        sha256_bytes(b"abc")
        == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_sha256_text_hashes_utf8() -> None:
    assert sha256_text("hello world") == (
        "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"
    )
    assert sha256_text("é") == sha256_bytes("é".encode("utf-8"))
