import logging

from corridor.common import TimedLogger, get_logger, log_phase, log_provider_call


def test_component_loggers_propagate_to_package_logger():
    component = get_logger("geo.mesh")
    package = logging.getLogger("corridor")

    assert component.name == "corridor.geo.mesh"
    assert component.handlers == []
    assert component.propagate
    assert package.handlers
    assert not package.propagate


def test_structured_entries():
    assert log_provider_call("detail", "fetch", duration_ms=1.5, identity="s1") == {
        "event": "provider_call",
        "collaborator": "detail",
        "operation": "fetch",
        "duration_ms": 1.5,
        "identity": "s1",
    }
    assert log_phase("search", 4) == {"event": "pipeline_phase", "phase": "search", "tasks": 4}


def test_timed_logger_records_duration():
    with TimedLogger(get_logger("test"), "noop") as timer:
        pass
    assert timer.duration_ms >= 0
