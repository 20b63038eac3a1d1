from __future__ import annotations

import unittest

from fakes import FakeClock, FakeCollector, FakeNetIO, FakeSignaller, app, conn, container, drain, snap

from netmon_live.collectors.release import ReleaseInfo
from netmon_live.config import CFG
from netmon_live.engine.messages import (
    DismissError, DNSResolved, DockerResolved, Key, KillCompleted, NetIOCollected,
    SnapshotCollected, Tick, ToggleSetting, VersionChecked,
)
from netmon_live.engine.model import Engine
from netmon_live.errors import CollectionCancelled, CollectionError
from netmon_live.models import NetIOStats
from netmon_live.state.navigation import ProcessSelection, SortColumn, ViewLevel


class FakeDocker:
    def __init__(self, ports=None, containers=()):
        self.ports = ports or {}
        self.containers = list(containers)
        self.calls = 0

    def resolve(self, timeout=None, cancel=None):
        self.calls += 1
        return dict(self.ports), list(self.containers)


def make_engine(*results, cfg=None, **kw):
    clock = kw.pop("clock", FakeClock())
    collector = FakeCollector(*results) if results else FakeCollector(snap())
    return Engine(cfg or CFG(check_updates=False), collector, clock=clock, **kw)


def keys(engine, *names):
    tasks = []
    for name in names:
        tasks.extend(engine.update(Key(name)))
    return tasks


class TickTests(unittest.TestCase):
    def test_init_schedules_tick_and_collection(self) -> None:
        engine = make_engine(netio=FakeNetIO(), docker=FakeDocker(),
                             version_checker=lambda *a: None, cfg=CFG(check_updates=True))
        names = [t.name for t in engine.init()]
        self.assertEqual(names, ["tick", "snapshot", "netio", "docker", "version"])

    def test_tick_reschedules_itself_first(self) -> None:
        engine = make_engine(cfg=CFG(refresh_interval=1.5, check_updates=False))
        tasks = engine.update(Tick())
        self.assertEqual(tasks[0].name, "tick")
        self.assertEqual(tasks[0].delay, 1.5)
        self.assertEqual([t.name for t in tasks[1:]], ["snapshot"])

    def test_tick_keeps_going_after_failed_collection(self) -> None:
        good = snap(app("sshd", conn(7, "0.0.0.0:22", state="LISTEN")))
        engine = make_engine(good)
        drain(engine, engine.init())
        engine.collector.results = [CollectionError("permission denied")]

        delayed = drain(engine, engine.update(Tick()))

        self.assertEqual(engine.last_error, "permission denied")
        self.assertIs(engine.snapshot, good)
        self.assertEqual([t.name for t in delayed], ["tick"])

    def test_successful_snapshot_clears_error(self) -> None:
        engine = make_engine()
        engine.update(SnapshotCollected(error=CollectionError("boom")))
        self.assertEqual(engine.frame().last_error, "boom")
        engine.update(SnapshotCollected(snap()))
        self.assertIsNone(engine.last_error)

    def test_dismiss_error(self) -> None:
        engine = make_engine()
        engine.update(SnapshotCollected(error=CollectionError("boom")))
        engine.update(DismissError())
        self.assertIsNone(engine.last_error)

    def test_quit_stops_the_tick_loop(self) -> None:
        engine = make_engine()
        keys(engine, "q")
        self.assertTrue(engine.quitting)
        self.assertEqual(engine.update(Tick()), [])


class SnapshotHandlingTests(unittest.TestCase):
    def test_changes_are_recorded_and_expire(self) -> None:
        clock = FakeClock(100.0)
        first = snap(app("curl", conn(9, "10.0.0.2:5000", "1.1.1.1:443")))
        second = snap(app("curl", conn(9, "10.0.0.2:5001", "1.1.1.1:443")))
        engine = make_engine(clock=clock)

        engine.update(SnapshotCollected(first))
        self.assertEqual(len(engine.ledger), 0)
        engine.update(SnapshotCollected(second))
        self.assertEqual(len(engine.ledger), 2)
        self.assertIs(engine.prev_snapshot, first)

        clock.advance(3.5)
        engine.update(Tick())
        self.assertEqual(len(engine.ledger), 0)

    def test_highlighting_disabled_records_nothing(self) -> None:
        engine = make_engine(cfg=CFG(highlight_changes=False, check_updates=False))
        engine.update(SnapshotCollected(snap(app("a", conn(1, "h:1")))))
        engine.update(SnapshotCollected(snap(app("a", conn(1, "h:2")))))
        self.assertEqual(len(engine.ledger), 0)

    def test_netio_merges_and_ignores_errors(self) -> None:
        engine = make_engine()
        engine.update(NetIOCollected({1: NetIOStats(10, 20)}))
        engine.update(NetIOCollected({2: NetIOStats(1, 2)}))
        engine.update(NetIOCollected(error=CollectionError("nope")))
        self.assertEqual(set(engine.netio_cache), {1, 2})

    def test_target_pid_drills_in_on_first_snapshot(self) -> None:
        s = snap(app("nginx", conn(42, "0.0.0.0:80", state="LISTEN")), app("sshd", conn(7, "0.0.0.0:22")))
        engine = make_engine(cfg=CFG(target_pid=42, check_updates=False))
        engine.update(SnapshotCollected(s))

        view = engine.current_view()
        self.assertEqual(view.level, ViewLevel.CONNECTIONS)
        self.assertEqual(view.process_name, "nginx")
        keys(engine, "esc")
        self.assertEqual(engine.current_view().selected, ProcessSelection("nginx"))

        engine.update(SnapshotCollected(s))
        self.assertEqual(engine.current_view().level, ViewLevel.PROCESS_LIST)


class DNSTests(unittest.TestCase):
    def setUp(self) -> None:
        conns = [conn(5, f"10.0.0.2:{5000 + i}", f"203.0.113.{i}:443") for i in range(15)]
        conns.append(conn(5, "0.0.0.0:80", "*", state="LISTEN"))
        self.snapshot = snap(app("browser", *conns))

    def test_at_most_ten_lookups_per_refresh(self) -> None:
        engine = make_engine(dns_lookup=lambda ip: f"host-{ip}")
        tasks = engine.update(SnapshotCollected(self.snapshot))
        self.assertEqual(len(tasks), 10)
        self.assertTrue(all(t.name.startswith("dns:") for t in tasks))

        # the next refresh skips in-flight addresses
        more = engine.update(SnapshotCollected(self.snapshot))
        self.assertEqual(len(more), 5)
        self.assertEqual(engine.update(SnapshotCollected(self.snapshot)), [])

    def test_results_are_cached_including_failures(self) -> None:
        def lookup(ip):
            if ip.endswith(".3"):
                raise CollectionError("no PTR")
            return f"host-{ip}"

        engine = make_engine(dns_lookup=lookup, cfg=CFG(max_dns_per_tick=20, check_updates=False))
        drain(engine, engine.update(SnapshotCollected(self.snapshot)))

        self.assertEqual(engine.dns_cache["203.0.113.1"], "host-203.0.113.1")
        self.assertEqual(engine.dns_cache["203.0.113.3"], "")
        self.assertEqual(len(engine.dns_cache), 15)
        self.assertEqual(engine.dns_pending, set())
        self.assertEqual(engine.update(SnapshotCollected(self.snapshot)), [])

    def test_dns_disabled_issues_nothing_until_toggled(self) -> None:
        engine = make_engine(dns_lookup=lambda ip: "x", cfg=CFG(dns_enabled=False, check_updates=False))
        self.assertEqual(engine.update(SnapshotCollected(self.snapshot)), [])
        self.assertEqual(len(engine.update(ToggleSetting("dns_enabled"))), 10)

    def test_late_result_after_failure_overwrites_negative_entry(self) -> None:
        engine = make_engine()
        engine.update(DNSResolved("1.2.3.4", error=CollectionCancelled("dns:1.2.3.4: deadline exceeded")))
        self.assertEqual(engine.dns_cache["1.2.3.4"], "")
        engine.update(DNSResolved("1.2.3.4", "one.example"))
        self.assertEqual(engine.dns_cache["1.2.3.4"], "one.example")


class NavigationKeyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.snapshot = snap(
            app("App1", conn(10, "10.0.0.1:1", "1.1.1.1:443")),
            app("App2", conn(30, "10.0.0.1:2", "1.1.1.1:443"), conn(30, "10.0.0.1:3", "1.1.1.1:443")),
            app("App3", conn(20, "10.0.0.1:4", "1.1.1.1:443")),
        )
        self.engine = make_engine(self.snapshot)
        self.engine.update(SnapshotCollected(self.snapshot))

    def test_cursor_moves_within_bounds(self) -> None:
        keys(self.engine, "up")
        self.assertEqual(self.engine.current_view().cursor, 0)
        keys(self.engine, "down", "j", "down", "down")
        self.assertEqual(self.engine.current_view().cursor, 2)
        self.assertEqual(self.engine.current_view().selected, ProcessSelection("App3"))

    def test_enter_drills_down_and_esc_goes_back(self) -> None:
        keys(self.engine, "down", "enter")
        view = self.engine.current_view()
        self.assertEqual(view.level, ViewLevel.CONNECTIONS)
        self.assertEqual(view.process_name, "App2")
        self.assertEqual(len(self.engine.rows()), 2)

        keys(self.engine, "backspace", "esc")
        self.assertEqual(len(self.engine.stack), 1)
        self.assertEqual(self.engine.current_view().cursor, 1)

    def test_sort_change_follows_the_selected_process(self) -> None:
        keys(self.engine, "down")
        keys(self.engine, "s", "left", "enter")
        self.assertEqual(self.engine.current_view().sort_column, SortColumn.PID)
        keys(self.engine, "s", "enter")

        view = self.engine.current_view()
        self.assertFalse(view.sort_ascending)
        self.assertEqual([a.name for a in self.engine.rows()], ["App2", "App3", "App1"])
        self.assertEqual(view.selected, ProcessSelection("App2"))
        self.assertEqual(view.cursor, 0)

    def test_column_picker_only_in_sort_mode(self) -> None:
        keys(self.engine, "right")
        self.assertEqual(self.engine.current_view().selected_column, SortColumn.PROCESS)
        keys(self.engine, "s", "right", "right", "esc")
        view = self.engine.current_view()
        self.assertFalse(view.sort_mode)
        self.assertEqual(view.sort_column, SortColumn.PROCESS)

    def test_v_toggles_grouped_and_flat_views(self) -> None:
        keys(self.engine, "down", "enter", "v")
        self.assertEqual(self.engine.current_view().level, ViewLevel.ALL_CONNECTIONS)
        self.assertEqual(len(self.engine.stack), 1)
        self.assertEqual(len(self.engine.rows()), 4)
        keys(self.engine, "v")
        self.assertEqual(self.engine.current_view().level, ViewLevel.PROCESS_LIST)

    def test_refresh_interval_steps_within_bounds(self) -> None:
        keys(self.engine, "+")
        self.assertEqual(self.engine.refresh_interval, 1.5)
        keys(self.engine, *["+"] * 10)
        self.assertEqual(self.engine.refresh_interval, 0.5)
        keys(self.engine, *["-"] * 40)
        self.assertEqual(self.engine.refresh_interval, 10.0)
        self.assertEqual(self.engine.update(Tick())[0].delay, 10.0)


class FilterKeyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.snapshot = snap(
            app("nginx", conn(1, "0.0.0.0:80", state="LISTEN")),
            app("proxy", conn(2, "0.0.0.0:8080", state="LISTEN")),
        )
        self.engine = make_engine(cfg=CFG(port_filter="80", check_updates=False))
        self.engine.update(SnapshotCollected(self.snapshot))

    def names(self):
        return [a.name for a in self.engine.rows()]

    def test_command_line_port_is_exact(self) -> None:
        self.assertTrue(self.engine.exact_port())
        self.assertEqual(self.names(), ["nginx"])

    def test_search_mode_uses_live_query_and_esc_reverts(self) -> None:
        keys(self.engine, "/")
        self.assertEqual(self.engine.search_query, "80")
        self.assertEqual(self.names(), ["nginx", "proxy"])
        keys(self.engine, "8", "esc")
        self.assertEqual(self.engine.active_filter, "80")
        self.assertEqual(self.names(), ["nginx"])

    def test_confirmed_edit_switches_to_substring_mode(self) -> None:
        keys(self.engine, "/", "backspace", "backspace", "p", "r", "o", "enter")
        self.assertEqual(self.engine.active_filter, "pro")
        self.assertFalse(self.engine.exact_port())
        self.assertEqual(self.names(), ["proxy"])

    def test_keys_typed_in_search_are_not_commands(self) -> None:
        keys(self.engine, "/", "q", "v")
        self.assertFalse(self.engine.quitting)
        self.assertEqual(self.engine.current_view().level, ViewLevel.PROCESS_LIST)
        self.assertEqual(self.engine.search_query, "80qv")


class KillTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.snapshot = snap(app("worker", conn(11, "10.0.0.1:7000"), conn(12, "10.0.0.1:7001")))

    def engine(self, signaller, **kw):
        engine = make_engine(clock=self.clock, signaller=signaller, **kw)
        engine.update(SnapshotCollected(self.snapshot))
        return engine

    def test_kill_every_pid_of_the_app(self) -> None:
        signaller = FakeSignaller()
        engine = self.engine(signaller)
        keys(engine, "x")
        self.assertEqual(engine.kill_target.pids, (11, 12))
        self.assertEqual(engine.frame().kill_target.signal, "SIGTERM")

        drain(engine, keys(engine, "y"))

        self.assertEqual(signaller.sent, [(11, "SIGTERM"), (12, "SIGTERM")])
        self.assertIsNone(engine.kill_target)
        self.assertEqual(engine.current_status(), "Killed 2 PIDs (worker)")
        self.clock.advance(3.1)
        self.assertEqual(engine.current_status(), "")

    def test_partial_failure_is_reported(self) -> None:
        engine = self.engine(FakeSignaller(fail_pids={12}))
        drain(engine, keys(engine, "X", "y"))
        self.assertEqual(engine.status, "Killed 1 PIDs, 1 failed (worker)")

    def test_total_failure_is_reported(self) -> None:
        engine = self.engine(FakeSignaller(fail_pids={11, 12}))
        drain(engine, keys(engine, "x", "y"))
        self.assertTrue(engine.status.startswith("Failed to kill worker: "))

    def test_single_connection_kill_from_connection_view(self) -> None:
        signaller = FakeSignaller()
        engine = self.engine(signaller)
        drain(engine, keys(engine, "enter", "down", "X", "y"))
        self.assertEqual(signaller.sent, [(12, "SIGKILL")])
        self.assertEqual(engine.status, "Killed PID 12 (worker)")

    def test_declining_leaves_everything_alone(self) -> None:
        signaller = FakeSignaller()
        engine = self.engine(signaller)
        self.assertEqual(keys(engine, "x", "n"), [])
        self.assertIsNone(engine.kill_target)
        keys(engine, "x", "j")
        self.assertIsNotNone(engine.kill_target)
        self.assertEqual(signaller.sent, [])

    def test_virtual_container_row_stops_the_container(self) -> None:
        vc, ports = container("web", "nginx:latest", "abcdef012345", ports=((8080, 80),))
        signaller = FakeSignaller()
        engine = self.engine(signaller, docker=FakeDocker(ports, [vc]))
        engine.update(DockerResolved(ports=ports, containers=(vc,)))

        drain(engine, keys(engine, "down", "x", "y"))

        self.assertEqual(signaller.stopped, [("abcdef012345", False)])
        self.assertEqual(engine.status, "Stopped container abcdef012345")

    def test_kill_completed_message_sets_status(self) -> None:
        engine = self.engine(FakeSignaller())
        engine.update(KillCompleted("Killed PID 1 (init)"))
        self.assertEqual(engine.frame().status, "Killed PID 1 (init)")


class EnrichmentTests(unittest.TestCase):
    def test_docker_resolution_replaces_cache_wholesale(self) -> None:
        vc, ports = container()
        docker = FakeDocker(ports, [vc])
        engine = make_engine(docker=docker)
        drain(engine, engine.init())
        self.assertEqual(docker.calls, 1)
        self.assertEqual(engine.virtual_containers, (vc,))

        engine.update(DockerResolved())
        self.assertEqual(engine.virtual_containers, ())
        self.assertEqual(engine.docker_ports, {})

    def test_docker_error_keeps_last_good_state(self) -> None:
        vc, ports = container()
        engine = make_engine()
        engine.update(DockerResolved(ports=ports, containers=(vc,)))
        engine.update(DockerResolved(error=CollectionCancelled("deadline exceeded")))
        self.assertEqual(engine.virtual_containers, (vc,))
        self.assertIsNone(engine.last_error)

    def test_toggling_docker_back_on_resolves_again(self) -> None:
        docker = FakeDocker()
        engine = make_engine(docker=docker)
        drain(engine, engine.init())
        self.assertEqual(engine.update(ToggleSetting("docker_containers")), [])
        tasks = engine.update(ToggleSetting("docker_containers"))
        self.assertEqual([t.name for t in tasks], ["docker"])

    def test_unknown_setting_is_ignored(self) -> None:
        engine = make_engine()
        self.assertEqual(engine.update(ToggleSetting("theme")), [])
        self.assertNotIn("theme", engine.settings)

    def test_version_check_sets_update_available(self) -> None:
        engine = make_engine()
        engine.update(VersionChecked(ReleaseInfo(current="0.1.0", latest="v0.2.0")))
        self.assertEqual(engine.update_available, "v0.2.0")
        engine.update(VersionChecked(error=CollectionError("offline")))
        self.assertEqual(engine.update_available, "v0.2.0")

    def test_version_check_up_to_date(self) -> None:
        engine = make_engine()
        engine.update(VersionChecked(ReleaseInfo(current="0.2.0", latest="v0.2.0")))
        self.assertEqual(engine.update_available, "")


if __name__ == "__main__":
    unittest.main()
