"""Tests for owner lookup and registry tokens."""

from unittest.mock import patch

import pytest

from errors import AuthError, CredentialsMissingError, TransportError
from registry.auth import registry_name, registry_token
from registry.owners import Owner, lookup_owners, owners_url
from sources.resolver import RegistrySourceIds
from sources.source_id import SourceId

CRATES_IO_IDS = RegistrySourceIds(
    use_pin=False,
    original=SourceId.crates_io(),
    replacement=SourceId.crates_io_sparse(),
)


class _StubIndex:
    def __init__(self, config):
        self._config = config

    def config(self):
        return self._config


def _token(ctx, source):
    return "secret-token"


class TestLookupOwners:
    """Owner lookup outcomes."""

    @patch("registry.owners.get_json")
    def test_owners_are_listed(self, mock_get_json, make_ctx):
        mock_get_json.return_value = (200, {"users": [
            {"id": 1, "login": "alice", "name": "Alice Liddell"},
            {"id": 2, "login": "bob", "name": None},
        ]})
        owners = lookup_owners(
            make_ctx(), CRATES_IO_IDS, "foo",
            index=_StubIndex({"api": "https://crates.io"}), token_provider=_token,
        )
        assert owners == [Owner("alice", "Alice Liddell"), Owner("bob")]
        assert [str(o) for o in owners] == ["alice (Alice Liddell)", "bob"]
        args, kwargs = mock_get_json.call_args
        assert args[0] == "https://crates.io/api/v1/crates/foo/owners"
        assert kwargs["headers"] == {"Authorization": "secret-token"}

    def test_local_source_has_no_owners(self, make_ctx, tmp_path):
        local = SourceId.for_local_registry(tmp_path)
        ids = RegistrySourceIds(use_pin=False, original=local, replacement=local)
        assert lookup_owners(make_ctx(), ids, "foo", token_provider=_token) is None

    def test_missing_credentials_yield_none(self, make_ctx):
        def missing(ctx, source):
            raise CredentialsMissingError("no token")
        assert lookup_owners(make_ctx(), CRATES_IO_IDS, "foo", index=_StubIndex({"api": "x"}),
                             token_provider=missing) is None

    def test_other_auth_errors_propagate(self, make_ctx):
        def broken(ctx, source):
            raise AuthError("unreadable credentials")
        with pytest.raises(AuthError):
            lookup_owners(make_ctx(), CRATES_IO_IDS, "foo", index=_StubIndex({"api": "x"}), token_provider=broken)

    def test_registry_without_api(self, make_ctx):
        assert lookup_owners(make_ctx(), CRATES_IO_IDS, "foo", index=_StubIndex({}), token_provider=_token) is None

    @patch("registry.owners.get_json")
    def test_api_error_is_transport_error(self, mock_get_json, make_ctx):
        mock_get_json.return_value = (500, None)
        with pytest.raises(TransportError):
            lookup_owners(make_ctx(), CRATES_IO_IDS, "foo",
                          index=_StubIndex({"api": "https://crates.io/"}), token_provider=_token)


def test_owners_url_strips_trailing_slash():
    assert owners_url("https://crates.io/", "serde") == "https://crates.io/api/v1/crates/serde/owners"


class TestRegistryToken:
    """Token discovery order."""

    def test_environment_for_crates_io(self, make_ctx):
        ctx = make_ctx(env={"CARGO_REGISTRY_TOKEN": "from-env"}, config={"registry": {"token": "from-config"}})
        assert registry_token(ctx, SourceId.crates_io()) == "from-env"

    def test_credentials_file(self, make_ctx):
        ctx = make_ctx(config={"registries": {"alt": {"index": "sparse+https://alt.example.com/"}}})
        (ctx.cargo_home / "credentials.toml").write_text('[registries.alt]\ntoken = "from-file"\n', encoding="utf-8")
        source = SourceId.for_registry("sparse+https://alt.example.com/")
        assert registry_name(ctx, source) == "alt"
        assert registry_token(ctx, source) == "from-file"

    def test_named_registry_environment(self, make_ctx):
        ctx = make_ctx(env={"CARGO_REGISTRIES_MY_ALT_TOKEN": "alt-env"})
        source = SourceId.for_registry("sparse+https://alt.example.com/", name="my-alt")
        assert registry_token(ctx, source) == "alt-env"

    def test_config_fallback(self, make_ctx):
        ctx = make_ctx(config={"registry": {"token": "from-config"}})
        assert registry_token(ctx, SourceId.crates_io_sparse()) == "from-config"

    def test_missing(self, make_ctx):
        with pytest.raises(CredentialsMissingError):
            registry_token(make_ctx(), SourceId.crates_io())

    def test_unknown_registry(self, make_ctx):
        with pytest.raises(CredentialsMissingError):
            registry_token(make_ctx(), SourceId.for_registry("sparse+https://unknown.example.com/"))

    def test_malformed_credentials(self, make_ctx):
        ctx = make_ctx()
        (ctx.cargo_home / "credentials.toml").write_text("token = [", encoding="utf-8")
        with pytest.raises(AuthError):
            registry_token(ctx, SourceId.crates_io())
