"""Tests for the scheduler tick loop."""

from sysmon.models import PreviousSampleStore
from sysmon.scheduler import Scheduler, TickContext
from sysmon.sorting import SortMode
from sysmon.users import UsernameCache

USERS = UsernameCache({0: "root", 1000: "alice"})


def make_scheduler(config, surface, terminator) -> Scheduler:
    return Scheduler(config, surface, users=USERS, terminator=terminator)


class TestTickContext:
    """Tests for TickContext."""

    def test_defaults(self):
        """Test a fresh context sorts by CPU with an empty store."""
        ctx = TickContext(users=USERS)
        assert ctx.sort_mode is SortMode.CPU
        assert ctx.store == PreviousSampleStore()
        assert ctx.status == ""


class TestDispatch:
    """Tests for Scheduler.dispatch."""

    def test_timeout_continues(self, config, scripted_surface, terminator):
        """Test a timeout is treated as no key."""
        scheduler = make_scheduler(config, scripted_surface(), terminator)
        assert scheduler.dispatch(None)
        assert scheduler.context.sort_mode is SortMode.CPU

    def test_quit(self, config, scripted_surface, terminator):
        """Test q stops the loop."""
        assert not make_scheduler(config, scripted_surface(), terminator).dispatch("q")

    def test_sort_keys(self, config, scripted_surface, terminator):
        """Test sort keys switch the mode."""
        scheduler = make_scheduler(config, scripted_surface(), terminator)
        scheduler.dispatch("m")
        assert scheduler.context.sort_mode is SortMode.MEM
        scheduler.dispatch("p")
        assert scheduler.context.sort_mode is SortMode.PID
        scheduler.dispatch("c")
        assert scheduler.context.sort_mode is SortMode.CPU

    def test_unknown_key_ignored(self, config, scripted_surface, terminator):
        """Test unbound keys change nothing."""
        scheduler = make_scheduler(config, scripted_surface(), terminator)
        assert scheduler.dispatch("z")
        assert scheduler.context.sort_mode is SortMode.CPU

    def test_kill_key_runs_modal(self, config, scripted_surface, terminator):
        """Test k hands input to the modal until it finishes."""
        surface = scripted_surface(["4", "2", "enter", "m"])
        scheduler = make_scheduler(config, surface, terminator)

        assert scheduler.dispatch("k")

        assert terminator.calls == [42]
        assert scheduler.context.status == "Sent SIGTERM to 42"
        assert surface.keys == ["m"]
        assert surface.text().strip() == ""


class TestTick:
    """Tests for Scheduler.tick."""

    def test_percentages_from_deltas(self, config, fake_proc, scripted_surface, terminator):
        """Test a tick derives usage from the previous sample."""
        fake_proc.add(1, "init", utime=10, uid=0)
        fake_proc.add(2, "busy", utime=100, rss_kb=100_000)
        scheduler = make_scheduler(config, scripted_surface(), terminator)
        scheduler.warm_up()

        fake_proc.set_cpu(110, 0, 60, 870, 0, 0, 0, 0)
        fake_proc.add(1, "init", utime=10, uid=0)
        fake_proc.add(2, "busy", utime=120, rss_kb=100_000)
        frame = scheduler.tick()

        assert frame.cpu_usage == 50.0
        assert [r.pid for r in frame.rows] == [2, 1]
        assert frame.rows[0].cpu_percent == 50.0
        assert frame.rows[0].mem_percent == 1.25
        assert frame.rows[1].cpu_percent == 0.0
        assert frame.rows[1].sample.user == "root"

    def test_store_replaced_each_tick(self, config, fake_proc, scripted_surface, terminator):
        """Test the store reflects only the latest tick."""
        fake_proc.add(1, "init", utime=10)
        proc = fake_proc.add(2, "short", utime=5)
        scheduler = make_scheduler(config, scripted_surface(), terminator)
        scheduler.warm_up()
        assert set(scheduler.context.store.process_times) == {1, 2}

        for child in proc.iterdir():
            child.unlink()
        proc.rmdir()
        scheduler.tick()

        assert set(scheduler.context.store.process_times) == {1}

    def test_sort_mode_applied(self, config, fake_proc, scripted_surface, terminator):
        """Test the frame is ordered by the current mode."""
        for pid in (30, 4, 17):
            fake_proc.add(pid, f"p{pid}")
        scheduler = make_scheduler(config, scripted_surface(), terminator)
        scheduler.dispatch("p")

        frame = scheduler.tick()

        assert [r.pid for r in frame.rows] == [4, 17, 30]
        assert frame.sort_mode is SortMode.PID

    def test_missing_sources_degrade(self, tmp_path, config, scripted_surface, terminator):
        """Test an unreadable procfs gives an empty, zeroed frame."""
        config.sampling.procfs_root = str(tmp_path / "gone")
        scheduler = make_scheduler(config, scripted_surface(), terminator)

        frame = scheduler.tick()

        assert frame.rows == []
        assert frame.cpu_usage == 0.0
        assert frame.memory.total_kb == 0

    def test_unexpected_error_keeps_loop_alive(self, config, scripted_surface, terminator, monkeypatch):
        """Test an exception inside a tick yields an empty frame."""
        scheduler = make_scheduler(config, scripted_surface(), terminator)

        def boom(users):
            raise RuntimeError("boom")

        monkeypatch.setattr(scheduler.procfs, "sample_processes", boom)
        frame = scheduler.tick()

        assert frame.rows == []
        assert frame.sort_mode is SortMode.CPU


class TestRun:
    """Tests for Scheduler.run."""

    def test_quit_returns_zero(self, config, scripted_surface, terminator):
        """Test q ends the loop with exit status 0 before drawing."""
        surface = scripted_surface(["q"])
        assert make_scheduler(config, surface, terminator).run() == 0
        assert surface.refreshes == 0

    def test_ticks_on_timeout(self, config, fake_proc, scripted_surface, terminator):
        """Test each timeout produces one rendered frame."""
        fake_proc.add(1, "init")
        surface = scripted_surface([None, None, "q"])

        make_scheduler(config, surface, terminator).run()

        assert surface.refreshes == 2
        assert surface.timeouts == [config.sampling.interval] * 3
        assert "init" in surface.snapshots[-1]

    def test_closed_surface_ends_loop(self, config, scripted_surface, terminator):
        """Test the loop returns 0 when input goes away."""
        surface = scripted_surface([None])
        assert make_scheduler(config, surface, terminator).run() == 0
        assert surface.refreshes == 1

    def test_kill_then_redraw(self, config, fake_proc, scripted_surface, terminator):
        """Test a confirmed kill sends one request and the next frame reports it."""
        fake_proc.add(1234, "victim")
        surface = scripted_surface(["k", "1", "2", "3", "4", "enter", "q"])

        make_scheduler(config, surface, terminator).run()

        assert terminator.calls == [1234]
        assert "Sent SIGTERM to 1234" in surface.snapshots[-1]
        assert "Enter PID to kill" not in surface.snapshots[-1]

    def test_cancelled_kill(self, config, scripted_surface, terminator):
        """Test a cancelled kill sends nothing."""
        surface = scripted_surface(["k", "1", "2", "escape", "q"])
        make_scheduler(config, surface, terminator).run()
        assert terminator.calls == []

    def test_sort_switch_keeps_percentages(self, config, fake_proc, scripted_surface, terminator):
        """Test changing sort mode between identical ticks changes only order."""
        fake_proc.add(1, "a", rss_kb=500)
        fake_proc.add(2, "b", rss_kb=100)
        scheduler = make_scheduler(config, scripted_surface(), terminator)
        scheduler.warm_up()

        by_cpu = scheduler.tick()
        scheduler.dispatch("m")
        by_mem = scheduler.tick()

        def values(frame):
            return {r.pid: (r.cpu_percent, r.mem_percent) for r in frame.rows}

        assert values(by_cpu) == values(by_mem)
        assert [r.pid for r in by_mem.rows] == [1, 2]
