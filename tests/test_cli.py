"""
Tests for the ``asc`` command-line interface.
"""

import json
import logging

import pytest
from unittest.mock import Mock, patch

from appstore_cli import __version__
from appstore_cli.cli import command_path, build_parser, exit_code_for, main
from appstore_cli.cli.agreements import extract_eula_id_from_next_url
from appstore_cli.cli.iap import parse_offer_code_prices
from appstore_cli.cli.shared import UsageError
from appstore_cli.cli.testflight import resolve_beta_group_id
from appstore_cli.exceptions import (
    AppStoreConnectError,
    AuthenticationError,
    ConflictError,
    MissingAuthError,
    NotFoundError,
    PaginationError,
    ServerError,
    ValidationError,
)

NEXT_URL = "https://api.appstoreconnect.apple.com/v1/builds?cursor=2"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Point config lookup at an empty directory and clear ASC_* defaults."""
    monkeypatch.setenv("ASC_CONFIG_PATH", str(tmp_path / "config.json"))
    for name in ("ASC_APP_ID", "ASC_DEFAULT_OUTPUT", "ASC_KEY_ID", "ASC_ISSUER_ID",
                 "ASC_PRIVATE_KEY_PATH", "ASC_PRIVATE_KEY", "ASC_PRIVATE_KEY_B64"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def api():
    """Mock API client returned to every command."""
    client = Mock()
    with patch('appstore_cli.cli.shared.get_client', return_value=client):
        yield client


@pytest.fixture
def run(capsys):
    """Run ``asc`` and return the exit code, stdout and stderr."""
    def _run(*argv):
        code = main(list(argv))
        captured = capsys.readouterr()
        return code, captured.out, captured.err
    return _run


def page(ids, resource_type="builds", next_url=None):
    return {
        "data": [{"type": resource_type, "id": i, "attributes": {}} for i in ids],
        "links": {"next": next_url} if next_url else {},
    }


class TestParser:
    """Test global parser behavior."""

    def test_version(self, run):
        code, out, _ = run("--version")
        assert code == 0
        assert out.strip() == f"asc {__version__}"

    def test_missing_command(self, run):
        code, _, err = run()
        assert code == 2
        assert "usage:" in err

    def test_unknown_flag(self, run):
        code, _, _ = run("builds", "list", "--bogus")
        assert code == 2

    def test_command_path(self):
        args = build_parser().parse_args(["testflight", "beta-groups", "list"])
        assert command_path(args) == "testflight beta-groups list"

    def test_every_family_registered(self):
        parser = build_parser()
        for argv in (
            ["builds", "uploads", "list"],
            ["testflight", "beta-license-agreements", "get"],
            ["iap", "offer-codes", "update"],
            ["offer-codes", "custom-codes", "create"],
            ["marketplace", "webhooks", "delete"],
            ["app-events", "localizations", "get"],
            ["agreements", "territories", "list"],
            ["pass-type-ids", "certificates", "list"],
            ["builds", "metrics", "beta-usages"],
            ["testflight", "beta-notifications", "create"],
            ["iap", "price-schedules", "create"],
            ["app-events", "submit"],
        ):
            assert callable(parser.parse_args(argv).func)


class TestExitCodes:
    """Test mapping of errors to exit codes."""

    @pytest.mark.parametrize("error,expected", [
        (UsageError("bad flags"), 2),
        (AuthenticationError("no", status_code=401), 3),
        (MissingAuthError("missing authentication"), 3),
        (NotFoundError("gone", status_code=404), 4),
        (ConflictError("exists", status_code=409), 5),
        (AppStoreConnectError("invalid", status_code=422), 32),
        (AppStoreConnectError("teapot", status_code=499), 59),
        (ServerError("down", status_code=503), 63),
        (ServerError("weird", status_code=599), 99),
        (AppStoreConnectError("bad", code="BAD_REQUEST"), 10),
        (ValidationError("--limit must be between 1 and 200"), 1),
        (AppStoreConnectError("boom"), 1),
    ])
    def test_exit_code_for(self, error, expected):
        assert exit_code_for(error) == expected

    def test_wrapped_error_uses_cause(self):
        try:
            try:
                raise NotFoundError("gone")
            except NotFoundError as e:
                raise PaginationError("page 2: gone") from e
        except PaginationError as wrapped:
            assert exit_code_for(wrapped) == 4

    def test_api_error_reported_with_command_path(self, api, run):
        api.get_build.side_effect = NotFoundError("build not found", status_code=404)

        code, out, err = run("builds", "info", "--build", "b1")

        assert code == 4
        assert out == ""
        assert "Error: builds info: build not found" in err

    def test_missing_credentials(self, run):
        code, _, err = run("builds", "info", "--build", "b1")
        assert code == 3
        assert "missing authentication" in err

    def test_undecodable_b64_key(self, run, monkeypatch):
        monkeypatch.setenv("ASC_PRIVATE_KEY_B64", "MIL//g==")
        code, _, err = run("builds", "info", "--build", "b1")
        assert code == 1
        assert "Error: builds info: ASC_PRIVATE_KEY_B64: decoded value is not PEM text" in err


class TestOutput:
    """Test result printing."""

    def test_json_default(self, api, run):
        api.get_build.return_value = {"data": {"type": "builds", "id": "b1"}}

        code, out, _ = run("builds", "info", "--build", "b1")

        assert code == 0
        assert json.loads(out) == {"data": {"type": "builds", "id": "b1"}}

    def test_table_output(self, api, run):
        api.get_build.return_value = {
            "data": {"type": "builds", "id": "b1", "attributes": {"version": "42"}}
        }

        code, out, _ = run("builds", "info", "--build", "b1", "--output", "table")

        assert code == 0
        assert "42" in out
        assert "version" in out

    def test_default_output_from_env(self, api, run, monkeypatch):
        monkeypatch.setenv("ASC_DEFAULT_OUTPUT", "markdown")
        api.get_build.return_value = {"data": {"type": "builds", "id": "b1"}}

        code, out, _ = run("builds", "info", "--build", "b1")

        assert code == 0
        assert out.startswith("|")

    def test_pretty_with_table(self, api, run):
        api.get_build.return_value = {"data": {"type": "builds", "id": "b1"}}

        code, _, err = run("builds", "info", "--build", "b1", "--output", "table", "--pretty")

        assert code == 1
        assert "--pretty is only valid with JSON output" in err


class TestBuildsCommands:
    """Test ``asc builds``."""

    def test_list(self, api, run):
        api.get_builds.return_value = page(["b1"])

        code, out, _ = run("builds", "list", "--app", "app1", "--limit", "5", "--sort", "-uploadedDate")

        assert code == 0
        api.get_builds.assert_called_once_with(
            "app1", sort="-uploadedDate", limit=5, next_url=None
        )

    def test_list_app_from_env(self, api, run, monkeypatch):
        monkeypatch.setenv("ASC_APP_ID", "envapp")
        api.get_builds.return_value = page([])

        run("builds", "list")

        assert api.get_builds.call_args[0][0] == "envapp"

    def test_list_requires_app(self, api, run):
        code, _, err = run("builds", "list")

        assert code == 2
        assert "Error: --app is required" in err
        api.get_builds.assert_not_called()

    def test_list_invalid_sort(self, api, run):
        code, _, err = run("builds", "list", "--app", "a", "--sort", "size")
        assert code == 2
        assert "--sort must be one of" in err

    def test_list_limit_out_of_range(self, api, run):
        code, _, err = run("builds", "list", "--app", "app1", "--limit", "500")

        assert code == 1
        assert "builds list: --limit must be between 1 and 200" in err

    def test_list_paginate(self, api, run):
        api.get_builds.return_value = page(["b1", "b2"], next_url=NEXT_URL)
        api.get_url.return_value = page(["b3"])

        code, out, _ = run("builds", "list", "--app", "app1", "--paginate")

        assert code == 0
        assert [item["id"] for item in json.loads(out)["data"]] == ["b1", "b2", "b3"]
        assert api.get_builds.call_args[1]["limit"] == 200
        api.get_url.assert_called_once_with(NEXT_URL)

    def test_list_next_skips_app(self, api, run):
        api.get_builds.return_value = page([])

        code, _, _ = run("builds", "list", "--next", NEXT_URL)

        assert code == 0
        api.get_builds.assert_called_once_with("", sort=None, limit=None, next_url=NEXT_URL)

    def test_latest_next_build_number(self, api, run):
        api.get_builds.return_value = {
            "data": [{"type": "builds", "id": "b1", "attributes": {"version": "5"}}]
        }
        api.get_build_uploads.return_value = {"data": [], "links": {}}

        code, out, _ = run("builds", "latest", "--app", "app1", "--next")

        assert code == 0
        assert json.loads(out)["nextBuildNumber"] == "6"

    def test_latest_invalid_version(self, api, run):
        code, _, err = run("builds", "latest", "--app", "app1", "--version", "v2")
        assert code == 2
        assert "Invalid version format" in err

    def test_latest_invalid_platform(self, api, run):
        code, _, err = run("builds", "latest", "--app", "app1", "--platform", "android")
        assert code == 2
        assert "--platform must be one of" in err

    def test_remove_groups_requires_confirm(self, api, run):
        code, _, err = run("builds", "remove-groups", "--build", "b1", "--group", "g1")

        assert code == 2
        assert "--confirm is required" in err
        api.remove_build_beta_groups.assert_not_called()

    def test_add_groups(self, api, run):
        code, out, _ = run("builds", "add-groups", "--build", "b1", "--group", "g1, g2")

        assert code == 0
        api.add_build_beta_groups.assert_called_once_with("b1", ["g1", "g2"])
        assert json.loads(out) == {"buildId": "b1", "groupIds": ["g1", "g2"], "action": "added"}

    def test_to_one_relationship_rejects_paging(self, api, run):
        code, _, err = run("builds", "relationships", "get", "--build", "b1", "--type", "app", "--limit", "5")

        assert code == 2
        assert "only valid for to-many relationships" in err

    def test_unknown_relationship(self, api, run):
        code, _, err = run("builds", "relationships", "get", "--build", "b1", "--type", "owner")
        assert code == 2
        assert "--type must be one of" in err

    def test_uploads_invalid_state(self, api, run):
        code, _, err = run("builds", "uploads", "list", "--app", "a", "--state", "DONE")
        assert code == 2
        assert "--state must be one of" in err

    def test_uploads_delete(self, api, run):
        code, out, _ = run("builds", "uploads", "delete", "--id", "u1", "--confirm")

        assert code == 0
        api.delete_build_upload.assert_called_once_with("u1")
        assert json.loads(out) == {"id": "u1", "deleted": True}


    def test_expire_all_dry_run_keeps_latest(self, api, run):
        api.get_builds.return_value = {
            "data": [
                {"id": "b1", "attributes": {"version": "1", "uploadedDate": "2020-01-01T00:00:00Z"}},
                {"id": "b3", "attributes": {"version": "3", "uploadedDate": "2020-03-01T00:00:00Z"}},
                {"id": "b2", "attributes": {"version": "2", "uploadedDate": "2020-02-01T00:00:00Z"}},
                {"id": "b0", "attributes": {"version": "0", "uploadedDate": "2019-01-01T00:00:00Z", "expired": True}},
            ],
            "links": {},
        }

        code, out, _ = run(
            "builds", "expire-all", "--app", "app1", "--older-than", "2020-02-15", "--keep-latest", "1", "--dry-run",
        )

        assert code == 0
        result = json.loads(out)
        assert [b["id"] for b in result["builds"]] == ["b2", "b1"]
        assert result["selectedCount"] == 2
        assert result["expiredCount"] == 0
        assert result["skippedExpiredCount"] == 1
        assert result["olderThan"] == "2020-02-15"
        assert result["keepLatest"] == 1
        api.get_builds.assert_called_once_with("app1", sort="-uploadedDate", limit=200)
        api.expire_build.assert_not_called()

    def test_expire_all_reports_failures(self, api, run):
        api.get_builds.return_value = {
            "data": [
                {"id": "b1", "attributes": {"version": "1", "uploadedDate": "2020-01-01T00:00:00Z"}},
                {"id": "b2", "attributes": {"version": "2", "uploadedDate": "2020-02-01T00:00:00Z"}},
            ],
            "links": {},
        }
        api.expire_build.side_effect = [ServerError("down", status_code=503), {"data": {"id": "b1"}}]

        code, out, err = run("builds", "expire-all", "--app", "app1", "--older-than", "30d", "--confirm")

        assert code == 1
        result = json.loads(out)
        assert result["expiredCount"] == 1
        assert result["builds"][0]["id"] == "b1"
        assert result["builds"][0]["expired"] is True
        assert result["failures"] == [{"id": "b2", "error": "down"}]
        assert "Error: builds expire-all: 1 builds failed to expire" in err

    def test_expire_all_requires_filter(self, api, run):
        code, _, err = run("builds", "expire-all", "--app", "app1", "--confirm")
        assert code == 2
        assert "--older-than or --keep-latest is required" in err

    def test_expire_all_requires_confirm(self, api, run):
        code, _, err = run("builds", "expire-all", "--app", "app1", "--older-than", "90d")
        assert code == 2
        assert "--confirm is required to expire builds" in err
        api.get_builds.assert_not_called()

    def test_expire_all_negative_keep_latest(self, api, run):
        code, _, err = run("builds", "expire-all", "--app", "app1", "--keep-latest", "-1", "--confirm")
        assert code == 1
        assert "--keep-latest must be greater than or equal to 0" in err

    def test_expire_all_bad_duration(self, api, run):
        code, _, err = run("builds", "expire-all", "--app", "app1", "--older-than", "90x", "--confirm")
        assert code == 1
        assert "--older-than must be a duration like 90d, 2w, or 3m" in err
        api.get_builds.assert_not_called()

    def test_metrics_beta_usages(self, api, run):
        api.get_build_beta_usages_metrics.return_value = {"data": []}

        code, _, _ = run("builds", "metrics", "beta-usages", "--build", "b1", "--limit", "10")

        assert code == 0
        api.get_build_beta_usages_metrics.assert_called_once_with("b1", limit=10, next_url=None)

    def test_metrics_beta_usages_next_without_build(self, api, run):
        api.get_build_beta_usages_metrics.return_value = {"data": []}

        code, _, _ = run("builds", "metrics", "beta-usages", "--next", NEXT_URL)

        assert code == 0
        api.get_build_beta_usages_metrics.assert_called_once_with("", limit=None, next_url=NEXT_URL)

    def test_metrics_beta_usages_requires_build(self, api, run):
        code, _, err = run("builds", "metrics", "beta-usages")
        assert code == 2
        assert "--build is required" in err


class TestTestFlightCommands:
    """Test ``asc testflight``."""

    def test_update_requires_flag(self, api, run):
        code, _, err = run("testflight", "beta-groups", "update", "--id", "g1")
        assert code == 2
        assert "at least one update flag is required" in err

    def test_update_requires_limit_when_enabling(self, api, run):
        code, _, err = run(
            "testflight", "beta-groups", "update", "--id", "g1", "--public-link-limit-enabled"
        )
        assert code == 2
        assert "--public-link-limit is required when enabling public link limit" in err

    def test_update_limit_range(self, api, run):
        code, _, err = run(
            "testflight", "beta-groups", "update", "--id", "g1", "--public-link-limit", "20000"
        )
        assert code == 2
        assert "--public-link-limit must be between 1 and 10000" in err

    def test_update_attributes(self, api, run):
        api.update_beta_group.return_value = {"data": {"type": "betaGroups", "id": "g1"}}

        code, _, _ = run(
            "testflight", "beta-groups", "update", "--id", "g1",
            "--name", "QA", "--feedback-enabled=false", "--public-link-enabled",
        )

        assert code == 0
        group_id, attributes = api.update_beta_group.call_args[0]
        assert group_id == "g1"
        assert attributes["name"] == "QA"
        assert attributes["feedbackEnabled"] is False
        assert attributes["publicLinkEnabled"] is True
        assert attributes["isInternalGroup"] is None

    def test_delete_requires_confirm(self, api, run):
        code, _, err = run("testflight", "beta-groups", "delete", "--id", "g1")
        assert code == 2
        assert "--confirm is required to delete" in err

    def test_relationship_alias_conflict(self, api, run):
        code, _, err = run(
            "testflight", "beta-groups", "relationships", "get",
            "--group-id", "g1", "--id", "g2", "--type", "builds",
        )
        assert code == 2
        assert "--group-id and --id must match" in err

    def test_add_tester_resolves_group_name(self, api, run):
        api.get_beta_groups.return_value = {
            "data": [{"type": "betaGroups", "id": "g1", "attributes": {"name": "Beta"}}],
            "links": {},
        }
        api.create_beta_tester.return_value = {"data": {"type": "betaTesters", "id": "t1"}}

        code, _, _ = run(
            "testflight", "beta-testers", "add", "--app", "app1",
            "--email", "a@example.com", "--group", "beta",
        )

        assert code == 0
        api.create_beta_tester.assert_called_once_with(
            "a@example.com", first_name=None, last_name=None, group_ids=["g1"]
        )

    def test_invite_creates_missing_tester(self, api, run):
        api.get_beta_testers.return_value = {"data": []}
        api.get_beta_groups.return_value = {"data": [{"id": "g1", "attributes": {"name": "Beta"}}]}
        api.create_beta_tester.return_value = {"data": {"id": "t1"}}
        api.create_beta_tester_invitation.return_value = {"data": {"id": "inv1"}}

        code, out, _ = run(
            "testflight", "beta-testers", "invite", "--app", "app1",
            "--email", "a@example.com", "--group", "g1",
        )

        assert code == 0
        assert json.loads(out) == {
            "invitationId": "inv1",
            "testerId": "t1",
            "appId": "app1",
            "email": "a@example.com",
        }

    def test_invite_unknown_tester_without_group(self, api, run):
        api.get_beta_testers.return_value = {"data": []}

        code, _, err = run(
            "testflight", "beta-testers", "invite", "--app", "app1", "--email", "a@example.com"
        )

        assert code == 1
        assert 'no tester found for "a@example.com"' in err

    def test_remove_tester(self, api, run):
        api.get_beta_testers.return_value = {"data": [{"id": "t1"}]}

        code, out, _ = run(
            "testflight", "beta-testers", "remove", "--app", "app1", "--email", "a@example.com"
        )

        assert code == 0
        api.delete_beta_tester.assert_called_once_with("t1")
        assert json.loads(out)["deleted"] is True

    def test_agreement_get_id_and_app_exclusive(self, api, run):
        code, _, err = run(
            "testflight", "beta-license-agreements", "get", "--id", "a1", "--app", "app1"
        )
        assert code == 2
        assert "--id and --app are mutually exclusive" in err

    def test_resolve_group_ambiguous(self):
        api = Mock()
        api.get_beta_groups.return_value = {
            "data": [
                {"id": "g1", "attributes": {"name": "Beta"}},
                {"id": "g2", "attributes": {"name": "beta"}},
            ]
        }
        with pytest.raises(AppStoreConnectError, match='multiple beta groups named "Beta"'):
            resolve_beta_group_id(api, "app1", "Beta")

    def test_resolve_group_by_id(self):
        api = Mock()
        api.get_beta_groups.return_value = {"data": [{"id": "g1", "attributes": {"name": "Beta"}}]}
        assert resolve_beta_group_id(api, "app1", "g1") == "g1"


    def test_tester_metrics(self, api, run):
        api.get_beta_tester_usages_metrics.return_value = {"data": []}

        code, _, _ = run(
            "testflight", "beta-testers", "metrics", "--tester-id", "t1", "--app", "app1", "--period", "p30d",
        )

        assert code == 0
        api.get_beta_tester_usages_metrics.assert_called_once_with(
            "t1", app_id="app1", period="P30D", limit=None, next_url=None
        )

    def test_tester_metrics_id_alias(self, api, run):
        api.get_beta_tester_usages_metrics.return_value = {"data": []}

        code, _, _ = run("testflight", "beta-testers", "metrics", "--id", "t1", "--app", "app1")

        assert code == 0
        assert api.get_beta_tester_usages_metrics.call_args[0][0] == "t1"

    def test_tester_metrics_ids_must_match(self, api, run):
        code, _, err = run(
            "testflight", "beta-testers", "metrics", "--tester-id", "t1", "--id", "t2", "--app", "app1",
        )
        assert code == 1
        assert "--tester-id and --id must match" in err

    def test_tester_metrics_invalid_period(self, api, run):
        code, _, err = run(
            "testflight", "beta-testers", "metrics", "--tester-id", "t1", "--app", "app1", "--period", "P1D",
        )
        assert code == 2
        assert "--period must be one of: P7D, P30D, P90D, P365D" in err

    def test_tester_metrics_requires_app(self, api, run):
        code, _, err = run("testflight", "beta-testers", "metrics", "--tester-id", "t1")
        assert code == 2
        assert "--app is required" in err
        api.get_beta_tester_usages_metrics.assert_not_called()

    def test_beta_notification_create(self, api, run):
        api.create_build_beta_notification.return_value = {"data": {"id": "n1"}}

        code, out, _ = run("testflight", "beta-notifications", "create", "--build", "b1")

        assert code == 0
        assert json.loads(out)["data"]["id"] == "n1"
        api.create_build_beta_notification.assert_called_once_with("b1")

    def test_beta_notification_requires_build(self, api, run):
        code, _, err = run("testflight", "beta-notifications", "create")
        assert code == 2
        assert "--build is required" in err


class TestIapCommands:
    """Test ``asc iap``."""

    def test_parse_prices(self):
        assert parse_offer_code_prices("usa:pp1, GBR:pp2") == [
            {"territory": "USA", "price_point": "pp1"},
            {"territory": "GBR", "price_point": "pp2"},
        ]

    @pytest.mark.parametrize("value", ["USA", "USA:", ":pp1"])
    def test_parse_prices_invalid(self, value):
        with pytest.raises(UsageError, match="TERRITORY:PRICE_POINT_ID"):
            parse_offer_code_prices(value)

    def test_create_requires_valid_type(self, api, run):
        code, _, err = run(
            "iap", "create", "--app", "app1", "--type", "subscription",
            "--ref-name", "Coins", "--product-id", "com.example.coins",
        )
        assert code == 2
        assert "--type must be one of" in err

    def test_create(self, api, run):
        api.create_in_app_purchase.return_value = {"data": {"type": "inAppPurchases", "id": "i1"}}

        code, _, _ = run(
            "iap", "create", "--app", "app1", "--type", "consumable",
            "--ref-name", "Coins", "--product-id", "com.example.coins",
        )

        assert code == 0
        api.create_in_app_purchase.assert_called_once_with(
            "app1", "Coins", "com.example.coins", "CONSUMABLE"
        )

    def test_offer_code_default_eligibilities(self, api, run):
        api.create_in_app_purchase_offer_code.return_value = {"data": {"id": "oc1"}}

        code, _, _ = run(
            "iap", "offer-codes", "create", "--iap-id", "i1",
            "--name", "SPRING", "--prices", "USA:pp1",
        )

        assert code == 0
        api.create_in_app_purchase_offer_code.assert_called_once_with(
            "i1",
            "SPRING",
            ["NON_SPENDER", "ACTIVE_SPENDER", "CHURNED_SPENDER"],
            [{"territory": "USA", "price_point": "pp1"}],
        )

    def test_offer_code_requires_prices(self, api, run):
        code, _, err = run("iap", "offer-codes", "create", "--iap-id", "i1", "--name", "SPRING")
        assert code == 2
        assert "--prices is required" in err

    def test_offer_code_update_active(self, api, run):
        api.update_in_app_purchase_offer_code.return_value = {"data": {"id": "oc1"}}

        code, _, _ = run("iap", "offer-codes", "update", "--offer-code-id", "oc1", "--active", "false")

        assert code == 0
        api.update_in_app_purchase_offer_code.assert_called_once_with("oc1", False)

    def test_offer_code_update_requires_active(self, api, run):
        code, _, err = run("iap", "offer-codes", "update", "--offer-code-id", "oc1")
        assert code == 2
        assert "--active is required (true or false)" in err

    def test_localization_create_invalid_locale(self, api, run):
        code, _, err = run(
            "iap", "localizations", "create", "--iap-id", "i1", "--name", "Coins", "--locale", "english",
        )
        assert code == 2
        assert "Invalid locale format" in err
        api.create_in_app_purchase_localization.assert_not_called()

    def test_localization_update_requires_flag(self, api, run):
        code, _, err = run("iap", "localizations", "update", "--localization-id", "l1")
        assert code == 2
        assert "at least one update flag is required" in err

    def test_localization_create_region_subtag(self, api, run):
        api.create_in_app_purchase_localization.return_value = {"data": {"id": "l1"}}

        code, _, _ = run(
            "iap", "localizations", "create", "--iap-id", "i1", "--name", "Titulo", "--locale", "es-419",
        )

        assert code == 0
        api.create_in_app_purchase_localization.assert_called_once_with("i1", "es-419", "Titulo", None)

    def test_localization_update_blank_values_rejected(self, api, run):
        code, _, err = run(
            "iap", "localizations", "update", "--localization-id", "l1", "--name", " ", "--description", "",
        )
        assert code == 2
        assert "at least one update flag is required" in err
        api.update_in_app_purchase_localization.assert_not_called()

    def test_localization_update_skips_blank_name(self, api, run):
        api.update_in_app_purchase_localization.return_value = {"data": {"id": "l1"}}

        code, _, _ = run(
            "iap", "localizations", "update", "--localization-id", "l1", "--name", "", "--description", " Gold ",
        )

        assert code == 0
        api.update_in_app_purchase_localization.assert_called_once_with("l1", {"description": "Gold"})


    def test_price_points_list(self, api, run):
        api.get_in_app_purchase_price_points.return_value = page(["p1"], "inAppPurchasePricePoints")

        code, _, _ = run("iap", "price-points", "list", "--iap-id", "i1", "--limit", "50")

        assert code == 0
        api.get_in_app_purchase_price_points.assert_called_once_with("i1", limit=50, next_url=None)

    def test_price_schedule_get(self, api, run):
        api.get_in_app_purchase_price_schedule.return_value = {"data": {"id": "s1"}}

        code, _, _ = run("iap", "price-schedules", "get", "--iap-id", "i1")

        assert code == 0
        api.get_in_app_purchase_price_schedule.assert_called_once_with("i1")

    def test_price_schedule_create(self, api, run):
        api.create_in_app_purchase_price_schedule.return_value = {"data": {"id": "s1"}}

        code, _, _ = run(
            "iap", "price-schedules", "create", "--iap-id", "i1", "--base-territory", "usa",
            "--prices", "pp1,pp2:2026-03-01:2026-04-01",
        )

        assert code == 0
        api.create_in_app_purchase_price_schedule.assert_called_once_with(
            "i1",
            "usa",
            [
                {"price_point": "pp1"},
                {"price_point": "pp2", "start_date": "2026-03-01", "end_date": "2026-04-01"},
            ],
        )

    def test_price_schedule_create_bad_date(self, api, run):
        code, _, err = run(
            "iap", "price-schedules", "create", "--iap-id", "i1", "--base-territory", "USA",
            "--prices", "pp1:03/01/2026",
        )
        assert code == 2
        assert "--prices start date must be in YYYY-MM-DD format" in err

    def test_price_schedule_create_requires_price_point(self, api, run):
        code, _, err = run(
            "iap", "price-schedules", "create", "--iap-id", "i1", "--base-territory", "USA",
            "--prices", ":2026-03-01",
        )
        assert code == 2
        assert "--prices must include a price point ID" in err

    def test_price_schedule_create_requires_prices(self, api, run):
        code, _, err = run("iap", "price-schedules", "create", "--iap-id", "i1", "--base-territory", "USA")
        assert code == 2
        assert "--prices is required" in err

    def test_availability_get(self, api, run):
        api.get_in_app_purchase_availability.return_value = {"data": {"id": "a1"}}

        code, _, _ = run("iap", "availability", "get", "--iap-id", "i1")

        assert code == 0
        api.get_in_app_purchase_availability.assert_called_once_with("i1")

    def test_availability_set(self, api, run):
        api.create_in_app_purchase_availability.return_value = {"data": {"id": "a1"}}

        code, _, _ = run(
            "iap", "availability", "set", "--iap-id", "i1", "--territories", "usa, gbr",
            "--available-in-new-territories",
        )

        assert code == 0
        api.create_in_app_purchase_availability.assert_called_once_with("i1", ["USA", "GBR"], True)

    def test_availability_set_requires_territories(self, api, run):
        code, _, err = run("iap", "availability", "set", "--iap-id", "i1")
        assert code == 2
        assert "--territories is required" in err

    def test_submit(self, api, run):
        api.create_in_app_purchase_submission.return_value = {"data": {"id": "s1"}}

        code, _, _ = run("iap", "submit", "--iap-id", "i1", "--confirm")

        assert code == 0
        api.create_in_app_purchase_submission.assert_called_once_with("i1")

    def test_submit_requires_confirm(self, api, run):
        code, _, err = run("iap", "submit", "--iap-id", "i1")
        assert code == 2
        assert "--confirm is required" in err
        api.create_in_app_purchase_submission.assert_not_called()


class TestSubscriptionOfferCodeCommands:
    """Test ``asc offer-codes``."""

    CREATE = [
        "offer-codes", "create", "--subscription-id", "s1", "--name", "WINBACK",
        "--customer-eligibilities", "expired,existing", "--offer-eligibility", "stack_with_intro_offers",
        "--duration", "one_month", "--offer-mode", "free_trial", "--prices", "USA:spp1",
    ]

    def test_create(self, api, run):
        api.create_subscription_offer_code.return_value = {"data": {"id": "soc1"}}

        code, _, _ = run(*self.CREATE, "--number-of-periods", "1", "--auto-renew-enabled", "true")

        assert code == 0
        subscription_id, attributes, prices = api.create_subscription_offer_code.call_args[0]
        assert subscription_id == "s1"
        assert attributes == {
            "name": "WINBACK",
            "customerEligibilities": ["EXPIRED", "EXISTING"],
            "offerEligibility": "STACK_WITH_INTRO_OFFERS",
            "duration": "ONE_MONTH",
            "offerMode": "FREE_TRIAL",
            "numberOfPeriods": 1,
            "autoRenewEnabled": True,
        }
        assert prices == [{"territory": "USA", "price_point": "spp1"}]

    def test_create_requires_periods(self, api, run):
        code, _, err = run(*self.CREATE)
        assert code == 2
        assert "--number-of-periods is required" in err

    def test_create_rejects_zero_periods(self, api, run):
        code, _, err = run(*self.CREATE, "--number-of-periods", "0")
        assert code == 2
        assert "--number-of-periods must be greater than 0" in err

    def test_list_requires_offer_code(self, api, run):
        code, _, err = run("offer-codes", "list")
        assert code == 2
        assert "--offer-code is required" in err

    def test_custom_code_requires_quantity(self, api, run):
        code, _, err = run(
            "offer-codes", "custom-codes", "create", "--offer-code-id", "soc1", "--code", "SPRING"
        )
        assert code == 2
        assert "--quantity is required" in err

    def test_custom_code_invalid_expiration(self, api, run):
        code, _, err = run(
            "offer-codes", "custom-codes", "create", "--offer-code-id", "soc1",
            "--code", "SPRING", "--quantity", "10", "--expiration-date", "next week",
        )
        assert code == 2
        assert "YYYY-MM-DD" in err

    def test_custom_code_update_requires_active(self, api, run):
        code, _, err = run("offer-codes", "custom-codes", "update", "--custom-code-id", "c1")
        assert code == 2
        assert "--active is required" in err


class TestMarketplaceCommands:
    """Test ``asc marketplace webhooks``."""

    def test_deprecation_warning(self, api, run, caplog):
        api.get_marketplace_webhook.return_value = {"data": {"id": "w1"}}

        with caplog.at_level(logging.WARNING):
            code, _, _ = run("marketplace", "webhooks", "get", "--webhook-id", "w1")

        assert code == 0
        assert "deprecated" in caplog.text

    def test_invalid_fields(self, api, run):
        code, _, err = run("marketplace", "webhooks", "list", "--fields", "secret")
        assert code == 1
        assert "--fields must be one of: endpointUrl" in err

    def test_update_requires_flag(self, api, run):
        code, _, err = run("marketplace", "webhooks", "update", "--webhook-id", "w1")
        assert code == 2
        assert "at least one update flag is required" in err

    def test_update_secret_only(self, api, run):
        api.update_marketplace_webhook.return_value = {"data": {"id": "w1"}}

        code, _, _ = run("marketplace", "webhooks", "update", "--webhook-id", "w1", "--secret", "s")

        assert code == 0
        api.update_marketplace_webhook.assert_called_once_with(
            "w1", endpoint_url=None, secret="s"
        )


class TestAppEventCommands:
    """Test ``asc app-events``."""

    def test_create_with_schedule(self, api, run):
        api.create_app_event.return_value = {"data": {"id": "e1"}}

        code, _, _ = run(
            "app-events", "create", "--app", "app1", "--name", "Summer",
            "--event-type", "special_event", "--start", "2026-06-01T00:00:00Z",
            "--end", "2026-06-30T00:00:00Z", "--territories", "usa,gbr", "--priority", "high",
        )

        assert code == 0
        app_id, attributes = api.create_app_event.call_args[0]
        assert app_id == "app1"
        assert attributes == {
            "referenceName": "Summer",
            "badge": "SPECIAL_EVENT",
            "priority": "HIGH",
            "territorySchedules": [{
                "eventStart": "2026-06-01T00:00:00Z",
                "eventEnd": "2026-06-30T00:00:00Z",
                "territories": ["USA", "GBR"],
            }],
        }

    def test_create_requires_event_type(self, api, run):
        code, _, err = run("app-events", "create", "--app", "app1", "--name", "Summer")
        assert code == 2
        assert "--event-type is required" in err

    def test_schedule_requires_end(self, api, run):
        code, _, err = run(
            "app-events", "update", "--event-id", "e1", "--start", "2026-06-01T00:00:00Z"
        )
        assert code == 2
        assert "--end is required" in err

    def test_update_requires_flag(self, api, run):
        code, _, err = run("app-events", "update", "--event-id", "e1")
        assert code == 2
        assert "at least one update flag is required" in err

    def test_localization_create(self, api, run):
        api.create_app_event_localization.return_value = {"data": {"id": "l1"}}

        code, _, _ = run(
            "app-events", "localizations", "create", "--event-id", "e1",
            "--locale", "en-US", "--name", "Summer", "--short-description", "Fun",
        )

        assert code == 0
        api.create_app_event_localization.assert_called_once_with(
            "e1", {"locale": "en-US", "name": "Summer", "shortDescription": "Fun"}
        )

    def test_submit(self, api, run):
        api.create_review_submission.return_value = {"data": {"id": "rs1"}}
        api.create_review_submission_item.return_value = {"data": {"id": "item1"}}
        api.submit_review_submission.return_value = {
            "data": {"id": "rs1", "attributes": {"submittedDate": "2026-06-01T00:00:00Z"}}
        }

        code, out, _ = run(
            "app-events", "submit", "--event-id", "e1", "--app", "app1", "--platform", "mac_os", "--confirm",
        )

        assert code == 0
        assert json.loads(out) == {
            "submissionId": "rs1",
            "itemId": "item1",
            "eventId": "e1",
            "appId": "app1",
            "platform": "MAC_OS",
            "submittedDate": "2026-06-01T00:00:00Z",
        }
        api.create_review_submission.assert_called_once_with("app1", "MAC_OS")
        api.create_review_submission_item.assert_called_once_with("rs1", "e1")
        api.submit_review_submission.assert_called_once_with("rs1")

    def test_submit_requires_confirm(self, api, run):
        code, _, err = run("app-events", "submit", "--event-id", "e1", "--app", "app1")
        assert code == 2
        assert "--confirm is required to submit for review" in err
        api.create_review_submission.assert_not_called()

    def test_submit_invalid_platform(self, api, run):
        code, _, err = run(
            "app-events", "submit", "--event-id", "e1", "--app", "app1", "--platform", "ANDROID", "--confirm",
        )
        assert code == 1
        assert "--platform must be one of" in err


class TestAgreementCommands:
    """Test ``asc agreements territories list``."""

    def test_extract_id(self):
        url = "https://api.appstoreconnect.apple.com/v1/endUserLicenseAgreements/eula1/territories?cursor=x"
        assert extract_eula_id_from_next_url(url) == "eula1"

    def test_extract_id_relationship_url(self):
        url = "https://api.appstoreconnect.apple.com/v1/endUserLicenseAgreements/eula1/relationships/territories"
        assert extract_eula_id_from_next_url(url) == "eula1"

    def test_extract_id_rejects_other_urls(self):
        with pytest.raises(UsageError, match="end user license agreement territories URL"):
            extract_eula_id_from_next_url("https://api.appstoreconnect.apple.com/v1/apps?cursor=x")

    def test_list_from_next(self, api, run):
        next_url = "https://api.appstoreconnect.apple.com/v1/endUserLicenseAgreements/eula1/territories?cursor=x"
        api.get_end_user_license_agreement_territories.return_value = page([], "territories")

        code, _, _ = run("agreements", "territories", "list", "--next", next_url)

        assert code == 0
        api.get_end_user_license_agreement_territories.assert_called_once_with(
            "eula1", limit=None, next_url=next_url
        )

    def test_list_mismatched_id(self, api, run):
        next_url = "https://api.appstoreconnect.apple.com/v1/endUserLicenseAgreements/eula1/territories?cursor=x"
        code, _, err = run("agreements", "territories", "list", "--id", "eula2", "--next", next_url)
        assert code == 2
        assert "--id and --next must reference the same agreement" in err

    def test_list_requires_id(self, api, run):
        code, _, err = run("agreements", "territories", "list")
        assert code == 2
        assert "--id or --next is required" in err


class TestPassTypeIdCommands:
    """Test ``asc pass-type-ids``."""

    def test_list_filters(self, api, run):
        api.get_pass_type_ids.return_value = page(["p1"], "passTypeIds")

        code, _, _ = run(
            "pass-type-ids", "list", "--identifier", "pass.com.example",
            "--include", "certificates", "--certificates-limit", "10", "--sort", "-name",
        )

        assert code == 0
        kwargs = api.get_pass_type_ids.call_args[1]
        assert kwargs["identifiers"] == ["pass.com.example"]
        assert kwargs["include"] == ["certificates"]
        assert kwargs["certificates_limit"] == 10
        assert kwargs["sort"] == "-name"

    def test_invalid_include(self, api, run):
        code, _, err = run("pass-type-ids", "get", "--pass-type-id", "p1", "--include", "apps")
        assert code == 2
        assert "--include must be one of: certificates" in err

    def test_certificates_limit_range(self, api, run):
        code, _, err = run("pass-type-ids", "get", "--pass-type-id", "p1", "--certificates-limit", "51")
        assert code == 1
        assert "--certificates-limit must be between 1 and 50" in err

    def test_delete(self, api, run):
        code, out, _ = run("pass-type-ids", "delete", "--pass-type-id", "p1", "--confirm")

        assert code == 0
        api.delete_pass_type_id.assert_called_once_with("p1")
        assert json.loads(out) == {"id": "p1", "deleted": True}
