import json

from compass.src.explorer.logger import ExplorationLogger
from compass.src.explorer.models import ActionKind, ActionProposal, RewardComponents
from factories import element


def _step(logger, index, success=True, total=0.5):
    action = ActionProposal(
        kind=ActionKind.CLICK,
        target=element("button", "Go", selector="#go"),
        source="navigation",
        success=success,
        error_message=None if success else "timeout",
    )
    logger.log_step(index, action, "https://x.com/", RewardComponents(total=total))


def test_entries_carry_session_and_timestamp():
    logger = ExplorationLogger("s1")
    logger.log_session_started("https://x.com/", "curiosity_driven")
    (entry,) = logger.get_entries()
    assert entry["event"] == "session_started"
    assert entry["session_id"] == "s1"
    assert entry["timestamp"].endswith("Z")


def test_step_payload():
    logger = ExplorationLogger("s1")
    _step(logger, 0, total=0.123456)
    (entry,) = logger.get_entries("step")
    assert entry["action"] == "click"
    assert entry["target"] == "#go"
    assert entry["source"] == "navigation"
    assert entry["reward"] == 0.1235


def test_summary():
    logger = ExplorationLogger("s1")
    _step(logger, 0, total=1.0)
    _step(logger, 1, success=False, total=0.0)
    logger.log_blocked(2, ActionProposal(kind=ActionKind.CLICK, target=element("button", "Delete")), "destructive target")
    logger.log_backtrack("https://x.com/a", "https://x.com/b", "ping_pong")

    summary = logger.get_summary()
    assert summary["steps"] == 2
    assert summary["successes"] == 1
    assert summary["failures"] == 1
    assert summary["blocked"] == 1
    assert summary["backtracks"] == 1
    assert summary["average_reward"] == 0.5


def test_save_writes_json(tmp_path):
    target = tmp_path / "logs" / "session.json"
    logger = ExplorationLogger("s1", log_file=str(target))
    _step(logger, 0)

    assert logger.save() == target
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["summary"]["steps"] == 1
    assert data["entries"][0]["event"] == "step"


def test_save_without_path_is_noop():
    logger = ExplorationLogger("s1")
    _step(logger, 0)
    assert logger.save() is None


def test_clear():
    logger = ExplorationLogger("s1")
    _step(logger, 0)
    logger.clear()
    assert logger.get_entries() == []
