from studio.models import Member, PostDay, Workspace
from studio.seed import DEMO_WORKSPACE


def test_seed_command_is_idempotent(app):
    runner = app.test_cli_runner()
    for _ in range(2):
        result = runner.invoke(args=["seed", "--days", "3"])
        assert result.exit_code == 0
        assert f"Seeded workspace {DEMO_WORKSPACE}" in result.output
    assert Workspace.query.count() == 1
    roles = sorted(m.role for m in Member.query.filter_by(workspace_id=DEMO_WORKSPACE))
    assert roles == ["editor", "owner", "viewer"]
    assert PostDay.query.filter_by(workspace_id=DEMO_WORKSPACE).count() == 3
