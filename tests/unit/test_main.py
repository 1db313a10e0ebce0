"""Unit tests for the Salio orchestrator and the CLI entry point."""

import random
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from salio.__main__ import USAGE, Salio
from salio.cli import main as cli_main
from salio.cli.chooser import InvalidSelectionError
from salio.core.inventory import JumpPath, Snapshot
from salio.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)
from salio.services.exceptions import (
    AgentUnavailableError,
    AuthFailedError,
    DialTimeoutError,
    UnreachableError,
)
from tests.fakes import FakeInventory, FakeTunnelEstablisher, make_instance


@pytest.fixture
def inventory(web_snapshot: Snapshot) -> FakeInventory:
    return FakeInventory(web_snapshot)


@pytest.fixture
def tunnel() -> FakeTunnelEstablisher:
    return FakeTunnelEstablisher()


@pytest.fixture
def session_runner() -> MagicMock:
    return MagicMock(return_value=0)


@pytest.fixture
def chooser() -> MagicMock:
    return MagicMock(side_effect=lambda candidates: candidates[0])


@pytest.fixture
def salio(inventory, tunnel, session_runner, chooser) -> Salio:
    return Salio(
        inventory_factory=inventory.factory,
        tunnel_factory=tunnel.factory,
        session_runner=session_runner,
        chooser=chooser,
        rng=random.Random(1),
    )


class TestJump:
    """Tests for Salio.jump."""

    def test_joins_terms_and_connects(
        self, salio: Salio, tunnel: FakeTunnelEstablisher, session_runner: MagicMock
    ) -> None:
        salio.jump("web", "prod", "a")

        assert tunnel.calls == [("ubuntu", "ubuntu", "203.0.113.10", "10.0.1.10")]
        assert tunnel.dial_timeouts == [10.0]
        session_runner.assert_called_once_with(tunnel.client)
        tunnel.client.close.assert_called_once()

    def test_no_candidates_prints_message(
        self, salio: Salio, tunnel: FakeTunnelEstablisher, capsys
    ) -> None:
        salio.jump("zzz")

        assert capsys.readouterr().out == "No instances found\n"
        assert tunnel.calls == []

    def test_instance_without_bastion_is_not_a_candidate(
        self, salio: Salio, tunnel: FakeTunnelEstablisher, capsys
    ) -> None:
        salio.jump("api")

        assert "No instances found" in capsys.readouterr().out
        assert tunnel.calls == []

    def test_empty_terms_print_usage(self, salio: Salio, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            salio.jump()

        assert exc_info.value.code == 1
        assert USAGE in capsys.readouterr().err

    def test_chooser_used_without_auto_jump(
        self, salio: Salio, chooser: MagicMock, tunnel: FakeTunnelEstablisher
    ) -> None:
        salio.jump("web.prod.a")

        chooser.assert_called_once()
        candidates = chooser.call_args[0][0]
        assert [c.instance.id for c in candidates] == ["i-web-a"]

    def test_auto_jump_skips_chooser_for_single_candidate(
        self, salio: Salio, chooser: MagicMock, tunnel: FakeTunnelEstablisher
    ) -> None:
        salio.jump("web.prod.a", auto_jump=True)

        chooser.assert_not_called()
        assert len(tunnel.calls) == 1

    def test_auto_jump_still_asks_for_several_candidates(
        self, salio: Salio, chooser: MagicMock
    ) -> None:
        salio.jump("web", auto_jump=True)

        chooser.assert_called_once()
        assert [c.instance.name for c in chooser.call_args[0][0]] == [
            "web.prod.a",
            "web.prod.b",
        ]

    def test_auto_jump_from_config_file(self, salio: Salio, chooser: MagicMock, write_config) -> None:
        write_config({"auto_jump": True})

        salio.jump("web.prod.b")

        chooser.assert_not_called()

    def test_flags_reach_inventory_and_tunnel(
        self, salio: Salio, inventory: FakeInventory, tunnel: FakeTunnelEstablisher
    ) -> None:
        salio.jump(
            "web.prod.a",
            profile="ops",
            region="eu-west-1",
            bastion_user="ec2-user",
            instance_user="centos",
            dial_timeout=3,
        )

        assert inventory.created_with == [("eu-west-1", "ops")]
        assert tunnel.dial_timeouts == [3.0]
        assert tunnel.calls == [("ec2-user", "centos", "203.0.113.10", "10.0.1.10")]

    def test_invalid_selection_propagates(self, salio: Salio, chooser: MagicMock) -> None:
        chooser.side_effect = InvalidSelectionError()

        with pytest.raises(InvalidSelectionError):
            salio.jump("web")

    def test_client_closed_when_session_fails(
        self, salio: Salio, tunnel: FakeTunnelEstablisher, session_runner: MagicMock
    ) -> None:
        session_runner.side_effect = paramiko.SSHException("channel closed")

        with pytest.raises(paramiko.SSHException):
            salio.jump("web.prod.a")

        tunnel.client.close.assert_called_once()

    def test_invalid_config_raises_value_error(self, salio: Salio) -> None:
        with pytest.raises(ValueError, match="dial_timeout"):
            salio.jump("web", dial_timeout=-1)


class TestConnect:
    """Tests for the user-name fallback in Salio.connect."""

    @pytest.fixture
    def candidate(self, web_snapshot: Snapshot) -> JumpPath:
        return JumpPath(web_snapshot.get("nat1"), web_snapshot.get("i-web-a"))

    def test_falls_back_to_debian_user_on_auth_failure(
        self, candidate: JumpPath, caplog
    ) -> None:
        tunnel = FakeTunnelEstablisher(errors=[AuthFailedError("ubuntu rejected")])

        with caplog.at_level("INFO", logger="salio.__main__"):
            client = Salio(tunnel_factory=tunnel.factory).connect(
                candidate, "ubuntu", None, 10.0
            )

        assert client is tunnel.client
        assert [c[1] for c in tunnel.calls] == ["ubuntu", "admin"]
        assert "[+] connection failed: ubuntu rejected" in caplog.text

    def test_fallback_happens_once(self, candidate: JumpPath) -> None:
        tunnel = FakeTunnelEstablisher(
            errors=[AuthFailedError("ubuntu rejected"), AuthFailedError("admin rejected")]
        )

        with pytest.raises(AuthFailedError, match="admin rejected"):
            Salio(tunnel_factory=tunnel.factory).connect(candidate, "ubuntu", None, 10.0)

        assert len(tunnel.calls) == 2

    @pytest.mark.parametrize(
        "error",
        [
            DialTimeoutError("timed out"),
            UnreachableError("no route"),
            AgentUnavailableError("no agent"),
        ],
    )
    def test_no_fallback_for_other_errors(self, candidate: JumpPath, error: Exception) -> None:
        tunnel = FakeTunnelEstablisher(errors=[error])

        with pytest.raises(type(error)):
            Salio(tunnel_factory=tunnel.factory).connect(candidate, "ubuntu", None, 10.0)

        assert len(tunnel.calls) == 1

    def test_explicit_instance_user_has_no_fallback(self, candidate: JumpPath) -> None:
        tunnel = FakeTunnelEstablisher(errors=[AuthFailedError("centos rejected")])

        with pytest.raises(AuthFailedError):
            Salio(tunnel_factory=tunnel.factory).connect(candidate, "ubuntu", "centos", 10.0)

        assert [c[1] for c in tunnel.calls] == ["centos"]

    def test_bastion_without_public_ip(self) -> None:
        candidate = JumpPath(
            make_instance("nat1", "web.nat", role="nat"),
            make_instance("i-1", "web.a", private_ip="10.0.0.5"),
        )
        tunnel = FakeTunnelEstablisher()

        with pytest.raises(UnreachableError, match="no public IP"):
            Salio(tunnel_factory=tunnel.factory).connect(candidate, "ubuntu", None, 10.0)

        assert tunnel.calls == []

    def test_instance_without_private_ip(self) -> None:
        candidate = JumpPath(
            make_instance("nat1", "web.nat", role="nat", public_ip="203.0.113.1"),
            make_instance("i-1", "web.a", private_ip=None),
        )

        with pytest.raises(UnreachableError, match="no private IP"):
            Salio(tunnel_factory=FakeTunnelEstablisher().factory).connect(
                candidate, "ubuntu", None, 10.0
            )


class TestCliMain:
    """Tests for salio.cli.main.main error handling."""

    @pytest.fixture(autouse=True)
    def no_logging_setup(self):
        with patch("salio.cli.main.configure_logging"):
            yield

    @pytest.mark.parametrize(
        "error,code",
        [
            (InvalidSelectionError(), 1),
            (ProviderCredentialsError("no credentials"), 1),
            (ProviderAPIError("denied", error_code="UnauthorizedOperation"), 1),
            (ProviderConnectionError("unreachable endpoint"), 1),
            (DialTimeoutError("timed out"), 1),
            (paramiko.SSHException("channel closed"), 1),
            (OSError("broken pipe"), 1),
            (ValueError("dial_timeout must be positive"), 2),
            (RuntimeError("Failed to read config file"), 1),
            (KeyboardInterrupt(), 130),
        ],
    )
    def test_errors_map_to_exit_codes(self, error: BaseException, code: int) -> None:
        with patch("salio.cli.main.fire.Fire", side_effect=error):
            with pytest.raises(SystemExit) as exc_info:
                cli_main.main()

        assert exc_info.value.code == code

    def test_invalid_selection_message_on_stdout(self, capsys) -> None:
        with patch("salio.cli.main.fire.Fire", side_effect=InvalidSelectionError()):
            with pytest.raises(SystemExit):
                cli_main.main()

        assert capsys.readouterr().out == "[!] I cannot do that Dave.\n"

    def test_tunnel_error_printed_verbatim(self, capsys) -> None:
        message = "timed out while initiating SSH connection to bastion after 10s"
        with patch("salio.cli.main.fire.Fire", side_effect=DialTimeoutError(message)):
            with pytest.raises(SystemExit):
                cli_main.main()

        assert capsys.readouterr().err == f"{message}\n"

    def test_unauthorized_operation_message(self, capsys) -> None:
        error = ProviderAPIError("denied", error_code="UnauthorizedOperation")
        with patch("salio.cli.main.fire.Fire", side_effect=error):
            with pytest.raises(SystemExit):
                cli_main.main()

        assert "Insufficient IAM permissions" in capsys.readouterr().err

    def test_debug_mode_reraises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SALIO_DEBUG", "1")

        with patch("salio.cli.main.fire.Fire", side_effect=UnreachableError("no route")):
            with pytest.raises(UnreachableError):
                cli_main.main()

    def test_fire_receives_jump(self) -> None:
        with patch("salio.cli.main.fire.Fire") as mock_fire:
            cli_main.main()

        target = mock_fire.call_args[0][0]
        assert target.__name__ == "jump"
        assert mock_fire.call_args[1] == {"name": "salio"}

    def test_unreadable_config_file_exits_cleanly(self, config_file, capsys) -> None:
        config_file.mkdir()

        with patch(
            "salio.cli.main.fire.Fire", side_effect=lambda target, name: target("web")
        ):
            with pytest.raises(SystemExit) as exc_info:
                cli_main.main()

        assert exc_info.value.code == 1
        assert "Unexpected error: Failed to read config file" in capsys.readouterr().err
