"""
CLI command tests (flask users ..., flask pharmacies ...).
"""

from phtrade.services import user_service


class TestUserCommands:

    def test_create_admin(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--username", "root",
            "--email", "root@example.com",
            "--password", "root-pass",
            "--role", "admin",
        ])

        assert result.exit_code == 0, result.output
        assert "PASS Created user: root" in result.output
        assert user_service.is_admin(user_service.get_user_by_username("root").id) is True

    def test_create_duplicate_fails(self, app, alice):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--username", "alice",
            "--email", "someone@example.com",
            "--password", "pw-1234",
        ])

        assert result.exit_code != 0
        assert "already exists" in result.output

    def test_list(self, app, alice, admin):
        result = app.test_cli_runner().invoke(args=["users", "list"])
        assert "alice" in result.output
        assert "ADMIN" in result.output


class TestPharmacyCommands:

    def test_balances(self, app, alice, pharmacy_a, pharmacy_b, make_record):
        make_record(pharmacy_a.id, pharmacy_b.id, alice.id, amount="42.00")

        result = app.test_cli_runner().invoke(args=["pharmacies", "balances", str(pharmacy_b.id)])

        assert result.exit_code == 0, result.output
        assert "Pharmacy A" in result.output
        assert "42.00" in result.output

    def test_unknown_pharmacy(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["pharmacies", "balances", "999999"])
        assert result.exit_code != 0
        assert "not found" in result.output
