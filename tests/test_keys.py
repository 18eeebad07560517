from tubeq.core.clock import system_clock
from tubeq.core.keys import TubeKeys


def test_key_names_are_prefix_tube_suffix():
    keys = TubeKeys("svc:")
    assert keys.ready("mail") == "svc:mail:ready_queue"
    assert keys.running("mail") == "svc:mail:running_queue"
    assert keys.paused("mail") == "svc:mail:paused"


def test_empty_prefix():
    keys = TubeKeys()
    assert keys.ready("t") == "t:ready_queue"


def test_tubes_do_not_share_keys():
    keys = TubeKeys("p")
    assert keys.ready("a") != keys.ready("b")
    assert keys.ready("a") != keys.running("a")


def test_system_clock_is_epoch_millis():
    import time

    before = int(time.time() * 1000)
    now = system_clock()
    after = int(time.time() * 1000)
    assert before - 1 <= now <= after + 1
