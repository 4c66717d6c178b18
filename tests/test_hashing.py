"""Unit tests for job identity hashing."""

from app.utils.hashing import (
    compute_fingerprint,
    compute_fingerprint_key,
    compute_job_key,
    hash_string,
)


class TestComputeJobKey:
    def test_is_sha256_hex(self):
        key = compute_job_key("jsearch", "abc123")
        assert len(key) == 64
        assert all(c in "0123456789abcdef" for c in key)

    def test_deterministic(self):
        assert compute_job_key("jsearch", "abc") == compute_job_key("jsearch", "abc")

    def test_source_is_case_folded(self):
        assert compute_job_key("JSearch", " abc ") == compute_job_key("jsearch", "abc")

    def test_provider_id_is_case_sensitive(self):
        assert compute_job_key("jsearch", "ABC") != compute_job_key("jsearch", "abc")


class TestComputeFingerprint:
    def test_normalizes_case_and_whitespace(self):
        a = compute_fingerprint("Senior  Engineer", "ACME", "Austin,  TX")
        b = compute_fingerprint(" senior engineer ", "acme", "austin, tx")
        assert a == b

    def test_location_changes_fingerprint(self):
        assert compute_fingerprint("Engineer", "Acme", "Austin") != compute_fingerprint(
            "Engineer", "Acme", "Boston"
        )

    def test_missing_location_matches_empty(self):
        assert compute_fingerprint("Engineer", "Acme") == compute_fingerprint("Engineer", "Acme", "")


class TestFingerprintKey:
    def test_never_collides_with_id_key(self):
        fingerprint = compute_fingerprint("Engineer", "Acme")
        assert compute_fingerprint_key("jsearch", fingerprint) != compute_job_key(
            "jsearch", fingerprint
        )

    def test_hash_string_known_value(self):
        assert hash_string("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )
