"""Timeline generation and event loop ordering."""

import threading

import pytest

from conftest import BASIC_TIMEOUT, COMPLEX_CHAINING, PROMISE_MICROTASK, final_output
from loopviz.core.state import CallbackKind, FrameKind, PhaseTag
from loopviz.engine.generator import (
    ERROR_MESSAGE,
    LIMIT_MESSAGE,
    GeneratorBusyError,
    GeneratorConfig,
    TimelineGenerator,
)


class TestScenarios:
    def test_basic_timeout_runs_after_sync_code(self, generator):
        timeline = generator.generate(BASIC_TIMEOUT)
        assert final_output(timeline) == ["Start", "End", "Macrotask"]

    def test_microtask_preempts_zero_delay_timer(self, generator):
        timeline = generator.generate(PROMISE_MICROTASK)
        assert final_output(timeline) == ["Start", "End", "Microtask", "Timeout"]

    def test_complex_chaining(self, generator):
        timeline = generator.generate(COMPLEX_CHAINING)
        assert final_output(timeline) == [
            "Start",
            "End",
            "Microtask 1",
            "Microtask 2",
            "Timeout 1",
            "Microtask in Timeout",
            "Timeout 2",
        ]

    def test_snake_case_aliases(self, generator):
        script = (
            "print('a')\n"
            "set_timeout(lambda: print('c'), 0)\n"
            "queue_microtask(lambda: print('b'))\n"
        )
        timeline = generator.generate(script)
        assert final_output(timeline) == ["a", "b", "c"]

    def test_console_log_joins_arguments(self, generator):
        timeline = generator.generate("console.log('x', 1, True)")
        assert final_output(timeline) == ["x 1 True"]

    def test_timer_extra_arguments_are_passed(self, generator):
        timeline = generator.generate("setTimeout(console.log, 0, 'late', 2)")
        assert final_output(timeline) == ["late 2"]

    def test_print_sep_keyword(self, generator):
        timeline = generator.generate("print('a', 'b', sep='-')")
        assert final_output(timeline) == ["a-b"]

    def test_print_end_keyword_is_ignored(self, generator):
        timeline = generator.generate("print('a', end='')\nprint('b')")
        assert final_output(timeline) == ["a", "b"]

    def test_print_file_and_flush_are_ignored(self, generator):
        timeline = generator.generate("import sys\nprint('a', file=sys.stderr, flush=True)")
        assert final_output(timeline) == ["a"]

    def test_host_control_flow(self, generator):
        script = (
            "for i in range(3):\n"
            "    setTimeout(lambda i=i: console.log(f'timer {i}'), 3 - i)\n"
        )
        timeline = generator.generate(script)
        assert final_output(timeline) == ["timer 2", "timer 1", "timer 0"]


class TestOrdering:
    def test_large_microtask_batch_drains_completely(self, generator):
        script = "for i in range(60):\n    queueMicrotask(lambda i=i: console.log(str(i)))\n"
        timeline = generator.generate(script)
        assert final_output(timeline) == [str(i) for i in range(60)]
        assert timeline[-1].description != LIMIT_MESSAGE

    def test_nested_deferred_drains_before_timers(self, generator):
        script = (
            "setTimeout(lambda: console.log('timer'), 0)\n"
            "def outer():\n"
            "    console.log('outer')\n"
            "    queueMicrotask(lambda: console.log('inner'))\n"
            "queueMicrotask(outer)\n"
        )
        timeline = generator.generate(script)
        assert final_output(timeline) == ["outer", "inner", "timer"]

    def test_no_timer_promoted_while_deferred_pending(self, generator):
        timeline = generator.generate(COMPLEX_CHAINING)
        promoted = [s for s in timeline if s.phase == PhaseTag.PROMOTING_READY]
        assert promoted
        assert all(not s.deferred_queue for s in promoted)

    def test_equal_delays_fire_in_registration_order(self, generator):
        script = (
            "setTimeout(lambda: console.log('a'), 10)\n"
            "setTimeout(lambda: console.log('b'), 0)\n"
            "setTimeout(lambda: console.log('c'), 10)\n"
            "setTimeout(lambda: console.log('d'), 0)\n"
        )
        timeline = generator.generate(script)
        assert final_output(timeline) == ["b", "d", "a", "c"]

    def test_nested_timer_ordered_with_sibling_timer(self, generator):
        script = (
            "def first():\n"
            "    console.log('m1')\n"
            "    setTimeout(lambda: console.log('nested'), 0)\n"
            "setTimeout(lambda: console.log('sibling'), 5)\n"
            "queueMicrotask(first)\n"
            "queueMicrotask(lambda: console.log('m2'))\n"
        )
        timeline = generator.generate(script)
        assert final_output(timeline) == ["m1", "m2", "nested", "sibling"]

    def test_negative_delay_is_clamped(self, generator):
        timeline = generator.generate("setTimeout(lambda: None, -5)")
        timers = [t for s in timeline for t in s.pending_timers]
        assert timers
        assert all(t.delay == 0 and t.remaining_time == 0 for t in timers)

    def test_continuation_is_tagged(self, generator):
        timeline = generator.generate(
            "Promise.resolve(1).then(lambda: None)\nqueueMicrotask(lambda: None)"
        )
        queued = max((s.deferred_queue for s in timeline), key=len)
        assert [t.kind for t in queued] == [CallbackKind.CONTINUATION, CallbackKind.MICROTASK]


class TestTimelineShape:
    def test_ids_start_at_zero_and_increase(self, generator):
        timeline = generator.generate(COMPLEX_CHAINING)
        assert [s.id for s in timeline] == list(range(len(timeline)))

    def test_empty_script(self, generator):
        timeline = generator.generate("")
        assert [s.description for s in timeline] == ["Idle", "Start script execution", "Main script finished"]
        assert all(not s.output for s in timeline)
        assert timeline[-1].stack == ()

    def test_primitive_yields_enter_apply_exit(self, generator):
        timeline = generator.generate("console.log('hi')")
        labels = [s.description for s in timeline]
        idx = labels.index("console.log('hi')")
        assert labels[idx : idx + 3] == ["console.log('hi')", "Output: hi", "Pop console.log"]
        assert timeline[idx].stack[-1].kind == FrameKind.CONSOLE_LOG
        assert timeline[idx].output == ()
        assert timeline[idx + 1].output == ("hi",)

    def test_stack_depth_is_bounded(self, generator):
        timeline = generator.generate(COMPLEX_CHAINING)
        assert max(len(s.stack) for s in timeline) == 2
        assert timeline[-1].stack == ()

    def test_highlight_lines(self, generator):
        timeline = generator.generate(BASIC_TIMEOUT)
        lines = {s.description: s.highlight_line for s in timeline}
        assert lines["Output: Start"] == 1
        assert lines["setTimeout(..., 0)"] == 3
        assert lines["Output: Macrotask"] == 3
        assert lines["Output: End"] == 5

    def test_repeated_calls_resolve_to_successive_lines(self, generator):
        script = "for _ in range(2):\n    console.log('tick')\nconsole.log('tick')\n"
        timeline = generator.generate(script)
        highlights = [s.highlight_line for s in timeline if s.description == "Output: tick"]
        assert highlights == [2, 3, None]

    def test_generation_is_deterministic(self, generator):
        first = generator.generate(COMPLEX_CHAINING)
        second = generator.generate(COMPLEX_CHAINING)
        assert first == second
        assert first is not second


class TestFailures:
    def test_runtime_error_ends_timeline(self, generator):
        timeline = generator.generate("console.log('a')\nmissing_name()\nconsole.log('b')")
        last = timeline[-1]
        assert last.output == ("a", ERROR_MESSAGE)
        assert last.stack == ()
        assert last.phase == PhaseTag.IDLE

    def test_syntax_error(self, generator):
        timeline = generator.generate("console.log('a'")
        assert [s.description for s in timeline] == ["Idle", "Start script execution", "Error"]
        assert timeline[-1].output == (ERROR_MESSAGE,)

    def test_error_inside_callback(self, generator):
        timeline = generator.generate("setTimeout(lambda: 1 / 0, 0)\nconsole.log('sync')")
        assert final_output(timeline) == ["sync", ERROR_MESSAGE]
        assert timeline[-1].stack == ()

    def test_script_exit_does_not_escape(self, generator):
        timeline = generator.generate("raise SystemExit(1)")
        assert final_output(timeline) == [ERROR_MESSAGE]

    def test_invalid_delay(self, generator):
        timeline = generator.generate("setTimeout(lambda: None, 'soon')")
        assert final_output(timeline) == [ERROR_MESSAGE]

    def test_runaway_timers_stop_at_limit(self):
        gen = TimelineGenerator(GeneratorConfig(max_iterations=5))
        script = "def again():\n    setTimeout(again, 0)\nsetTimeout(again, 0)\n"
        timeline = gen.generate(script)
        assert [s.description for s in timeline].count("Run Macrotask") == 5
        assert timeline[-1].description == LIMIT_MESSAGE
        assert timeline[-1].pending_timers

    def test_runaway_microtasks_stop_at_limit(self):
        gen = TimelineGenerator(GeneratorConfig(max_microtasks=5))
        script = "def again():\n    queueMicrotask(again)\nqueueMicrotask(again)\n"
        timeline = gen.generate(script)
        assert [s.description for s in timeline].count("Run Microtask") == 5
        assert timeline[-1].description == LIMIT_MESSAGE

    def test_limit_snapshot_can_be_disabled(self):
        gen = TimelineGenerator(GeneratorConfig(max_iterations=3, record_iteration_limit=False))
        timeline = gen.generate("def again():\n    setTimeout(again, 0)\nsetTimeout(again, 0)\n")
        assert timeline[-1].description == "Macrotask finished"

    def test_default_limit_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOOPVIZ_MAX_ITERATIONS", "7")
        assert TimelineGenerator().config.max_iterations == 7

    def test_nested_generate_rejected(self, monkeypatch):
        gen = TimelineGenerator()
        reset = gen.locator.reset

        def reenter(source):
            reset(source)
            gen.generate("")

        monkeypatch.setattr(gen.locator, "reset", reenter)
        with pytest.raises(GeneratorBusyError):
            gen.generate("console.log('x')")

    def test_generate_from_other_thread_rejected(self, monkeypatch):
        gen = TimelineGenerator()
        reset = gen.locator.reset
        errors = []

        def generate_elsewhere():
            try:
                gen.generate("")
            except GeneratorBusyError as exc:
                errors.append(exc)

        def reset_then_race(source):
            reset(source)
            worker = threading.Thread(target=generate_elsewhere)
            worker.start()
            worker.join()

        monkeypatch.setattr(gen.locator, "reset", reset_then_race)
        timeline = gen.generate("console.log('x')")
        assert len(errors) == 1
        assert final_output(timeline) == ["x"]

    def test_guard_released_after_run(self, generator):
        generator.generate("console.log('a')")
        assert final_output(generator.generate("console.log('b')")) == ["b"]

    def test_invalid_limit_in_environment_falls_back(self, monkeypatch):
        monkeypatch.setenv("LOOPVIZ_MAX_ITERATIONS", "lots")
        monkeypatch.setenv("LOOPVIZ_MAX_MICROTASKS", "12")
        config = TimelineGenerator().config
        assert config.max_iterations == GeneratorConfig.max_iterations
        assert config.max_microtasks == 12
