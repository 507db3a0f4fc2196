"""
Tests for the Logger facade.

Tests verify:
- with_* calls never mutate the receiver
- Fields are redacted at attachment time
- with_error(None) returns the same logger
- with_context attaches the trace id (or "")
- The three call shapes render messages as documented
- fatal flushes then exits; panic flushes then raises
"""

import contextvars
import json
import threading
from unittest.mock import MagicMock

import pytest

from guardlog.core.errors import LoggerPanic
from guardlog.observability import REDACTED, Level, Logger, RedactionConfig, create_backend
from guardlog.observability.context import trace_id_var, trace_scope

tenant_var: contextvars.ContextVar[str] = contextvars.ContextVar("tenant")  # noqa: B039


class TestChaining:
    def test_with_field_is_non_destructive(self, make_logger):
        a = make_logger()
        b = a.with_field("x", 1).with_field("y", 2)

        assert dict(b.fields) == {"x": 1, "y": 2}
        assert dict(a.fields) == {}

    def test_with_fields_mapping_and_kwargs(self, make_logger):
        log = make_logger().with_fields({"a": 1}, b=2)
        assert dict(log.fields) == {"a": 1, "b": 2}

    def test_with_fields_empty_returns_self(self, make_logger):
        log = make_logger()
        assert log.with_fields() is log
        assert log.with_fields({}) is log

    def test_derived_loggers_share_backend_and_config(self, make_logger):
        cfg = RedactionConfig(extra_patterns=("ssn",))
        root = make_logger(redaction=cfg)
        child = root.with_field("k", "v").with_error(ValueError("x")).with_context({"trace_id": "t"})

        assert child.backend is root.backend
        assert child.redaction is root.redaction

    def test_sensitive_fields_redacted_on_attach(self, make_logger, records):
        log = make_logger().with_field("password", "hunter2").with_fields({"api_key": "k", "user": "alice"})

        assert log.fields["password"] == REDACTED
        assert log.fields["api_key"] == REDACTED
        assert log.fields["user"] == "alice"

        log.info("login")
        record = records()[0]
        assert record["password"] == REDACTED
        assert "hunter2" not in json.dumps(record)

    def test_allow_sensitive_keeps_values(self, make_logger):
        log = make_logger(redaction=RedactionConfig(allow_sensitive=True)).with_field("token", "abc")
        assert log.fields["token"] == "abc"

    def test_redaction_is_irreversible(self, make_logger):
        log = make_logger().with_field("secret", "s3cr3t")
        relaxed = log.with_field("other", 1)
        assert relaxed.fields["secret"] == REDACTED

    def test_non_string_keys_accepted(self, make_logger, records):
        make_logger().with_field(7, "seven").info("x")
        assert records()[0]["7"] == "seven"

    def test_concurrent_derivation_from_shared_parent(self, make_logger):
        parent = make_logger().with_field("shared", True)
        results = {}

        def worker(n):
            child = parent
            for i in range(100):
                child = child.with_field(f"w{n}_{i}", i)
            results[n] = child

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert dict(parent.fields) == {"shared": True}
        for n, child in results.items():
            assert len(child.fields) == 101
            assert all(not k.startswith("w") or k.startswith(f"w{n}_") for k in child.fields)


class TestWithError:
    def test_none_returns_same_logger(self, make_logger):
        log = make_logger().with_field("a", 1)
        same = log.with_error(None)

        assert same is log
        assert same.bound_error is None
        assert dict(same.fields) == {"a": 1}

    def test_error_attached_to_record(self, make_logger, records):
        make_logger().with_error(ValueError("disk full")).error("write failed")
        record = records()[0]

        assert record["error"] == "disk full"
        assert record["level"] == "ERROR"
        assert "stack" not in record

    def test_raised_error_carries_stack(self, make_logger, records):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            make_logger().with_error(e).error("failed")

        record = records()[0]
        assert record["error"] == "boom"
        assert "RuntimeError: boom" in record["stack"]

    def test_original_logger_has_no_error(self, make_logger):
        log = make_logger()
        log.with_error(ValueError("x"))
        assert log.bound_error is None


class TestWithContext:
    def test_current_context(self, make_logger, records):
        log = make_logger()
        with trace_scope("req-1"):
            bound = log.with_context()
        bound.info("handled")

        assert records()[0]["trace_id"] == "req-1"

    def test_mapping_context(self, make_logger):
        assert make_logger().with_context({"trace_id": "m-1"}).trace_id == "m-1"

    def test_contextvars_snapshot(self, make_logger):
        ctx = contextvars.copy_context()
        ctx.run(trace_id_var.set, "snap-1")
        assert make_logger().with_context(ctx).trace_id == "snap-1"

    def test_object_with_attribute(self, make_logger):
        class Request:
            trace_id = "obj-1"

        assert make_logger().with_context(Request()).trace_id == "obj-1"

    def test_missing_trace_id_is_empty_string(self, make_logger, records):
        make_logger().with_context(object()).info("x")
        assert records()[0]["trace_id"] == ""

    def test_trace_id_absent_without_with_context(self, make_logger, records):
        make_logger().info("x")
        assert "trace_id" not in records()[0]

    def test_custom_extractor(self, make_logger):
        log = make_logger(trace_id_getter=lambda ctx: ctx["X-Request-Id"])
        assert log.with_context({"X-Request-Id": "hdr-1"}).trace_id == "hdr-1"


class TestWithContextValue:
    def test_value_from_bound_context(self, make_logger, records):
        log = make_logger().with_context({"trace_id": "t-1", "tenant": "acme"})
        log.with_context_value("tenant").info("x")

        record = records()[0]
        assert record["tenant"] == "acme"
        assert record["trace_id"] == "t-1"

    def test_explicit_context_wins(self, make_logger):
        log = make_logger().with_context({"tenant": "bound"})
        assert log.with_context_value("tenant", {"tenant": "given"}).fields["tenant"] == "given"

    def test_object_attribute(self, make_logger):
        class Request:
            tenant = "obj"

        assert make_logger().with_context_value("tenant", Request()).fields["tenant"] == "obj"

    def test_contextvars_snapshot_by_name(self, make_logger):
        ctx = contextvars.copy_context()
        ctx.run(tenant_var.set, "snap")
        assert make_logger().with_context_value("tenant", ctx).fields["tenant"] == "snap"

    def test_current_context_when_nothing_bound(self, make_logger):
        token = tenant_var.set("live")
        try:
            log = make_logger().with_context_value("tenant")
        finally:
            tenant_var.reset(token)
        assert log.fields["tenant"] == "live"

    def test_with_context_snapshot_is_kept(self, make_logger):
        token = tenant_var.set("at-bind")
        try:
            log = make_logger().with_context()
        finally:
            tenant_var.reset(token)
        assert log.with_context_value("tenant").fields["tenant"] == "at-bind"

    def test_missing_value_is_none(self, make_logger, records):
        make_logger().with_context_value("tenant", {}).info("x")
        assert records()[0]["tenant"] is None

    def test_value_is_redacted(self, make_logger):
        log = make_logger().with_context_value("session_token", {"session_token": "abc"})
        assert log.fields["session_token"] == REDACTED

    def test_receiver_unchanged(self, make_logger):
        log = make_logger()
        log.with_context_value("tenant", {"tenant": "a"})
        assert dict(log.fields) == {}


class TestMessageShapes:
    def test_default_shape_concatenates(self, make_logger, records):
        log = make_logger()
        log.info("rows:", 3)
        log.info(1, 2, "x", 3)
        assert [r["msg"] for r in records()] == ["rows:3", "1 2x3"]

    def test_ln_shape_joins_with_spaces(self, make_logger, records):
        make_logger().infoln("rows:", 3, "done")
        assert records()[0]["msg"] == "rows: 3 done"

    def test_formatted_shape(self, make_logger, records):
        make_logger().infof("user %s has %d rows", "alice", 3)
        assert records()[0]["msg"] == "user alice has 3 rows"

    def test_formatted_without_args_is_literal(self, make_logger, records):
        make_logger().infof("100% done")
        assert records()[0]["msg"] == "100% done"

    def test_bad_format_degrades(self, make_logger, records):
        make_logger().infof("%d rows", "many")
        msg = records()[0]["msg"]
        assert msg.startswith("%d rows")
        assert "BADFORMAT" in msg

    @pytest.mark.parametrize(
        "method,level",
        [
            ("debug", "DEBUG"),
            ("info", "INFO"),
            ("warn", "WARN"),
            ("warning", "WARN"),
            ("error", "ERROR"),
            ("print", "INFO"),
        ],
    )
    def test_levels(self, make_logger, records, method, level):
        log = make_logger()
        getattr(log, method)("a")
        getattr(log, method + "f")("%s", "b")
        getattr(log, method + "ln")("c")
        assert [r["level"] for r in records()] == [level] * 3

    def test_disabled_levels_skip_rendering(self, make_logger, sink):
        log = make_logger(level="warn")
        arg = MagicMock()
        log.debug(arg)
        log.info(arg)

        arg.__str__.assert_not_called()
        assert sink.getvalue() == ""

    def test_enabled(self, make_logger):
        log = make_logger(level="info")
        assert log.enabled("debug") is False
        assert log.enabled(Level.ERROR) is True


class TestFatalAndPanic:
    def test_fatal_flushes_then_exits(self, sink):
        backend = create_backend("stream", level="info", output=sink)
        calls = []
        backend.flush = lambda: calls.append("flush")
        exit_func = MagicMock(side_effect=lambda code: calls.append(("exit", code)))

        Logger(backend, exit_func=exit_func).fatalf("cannot start: %s", "no db")

        assert calls == ["flush", ("exit", 1)]
        assert json.loads(sink.getvalue())["level"] == "FATAL"

    def test_fatal_default_raises_system_exit(self, make_logger, records):
        with pytest.raises(SystemExit) as exc_info:
            make_logger().fatal("bye")
        assert exc_info.value.code == 1
        assert records()[0]["msg"] == "bye"

    @pytest.mark.parametrize("method", ["fatal", "fatalln"])
    def test_fatal_shapes(self, make_logger, records, method):
        exit_func = MagicMock()
        getattr(make_logger(exit_func=exit_func), method)("x", 1)
        exit_func.assert_called_once_with(1)

    def test_panic_writes_then_raises(self, make_logger, records):
        log = make_logger().with_fields(order=7, password="p")

        with pytest.raises(LoggerPanic) as exc_info:
            log.panicf("invariant broken: %s", "negative total")

        assert exc_info.value.message == "invariant broken: negative total"
        assert exc_info.value.fields == {"order": 7, "password": REDACTED}
        record = records()[0]
        assert record["level"] == "PANIC"
        assert record["order"] == 7

    @pytest.mark.parametrize("method", ["panic", "panicln"])
    def test_panic_shapes(self, make_logger, method):
        with pytest.raises(LoggerPanic):
            getattr(make_logger(), method)("x")


class TestAddSource:
    def test_source_points_at_caller(self, sink):
        backend = create_backend("stream", level="info", add_source=True, output=sink)
        Logger(backend).info("here")

        source = json.loads(sink.getvalue())["source"]
        assert source["file"].endswith("test_facade.py")
        assert source["function"] == "test_source_points_at_caller"
        assert isinstance(source["line"], int)


@pytest.mark.parametrize("kind", ["stream", "structlog", "stdlib"])
def test_same_contract_on_every_backend(make_logger, records, kind):
    log = make_logger(kind=kind).with_fields(user="alice", token="t").with_error(ValueError("e"))
    log.with_context({"trace_id": "t-9"}).warnf("%d retries", 2)

    record = records()[0]
    assert record["level"] == "WARN"
    assert record["msg"] == "2 retries"
    assert record["user"] == "alice"
    assert record["token"] == REDACTED
    assert record["error"] == "e"
    assert record["trace_id"] == "t-9"


@pytest.mark.parametrize("kind", ["stream", "structlog", "stdlib"])
def test_field_named_like_a_parameter(make_logger, records, kind):
    make_logger(kind=kind).with_fields({"self": 1, "event": "signup"}).info("hello")

    record = records()[0]
    assert record["msg"] == "hello"
    assert record["self"] == 1
